from SercaTools.optimization.runner import get_pso_parser, run_fit

import logging

if __name__ == "__main__":
    parser = get_pso_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO,
                        format='%(asctime)s %(levelname)s %(message)s')
    result = run_fit(**vars(args))
    print(result['report'].summary())
