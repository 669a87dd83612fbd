from SercaTools.model_data.models import (available_models, model_data,
                                          load_network, load_rate_table,
                                          load_environment, load_model,
                                          available_reference_curves,
                                          load_reference_curve)
