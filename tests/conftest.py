import pytest


def pytest_addoption(parser):
    parser.addoption('--runslow',
                     action='store_true',
                     default=False,
                     help='run the full scale simulation tests')


def pytest_configure(config):
    config.addinivalue_line('markers', 'slow: full scale simulation test')


def pytest_collection_modifyitems(config, items):
    if config.getoption('--runslow'):
        return
    skip_slow = pytest.mark.skip(reason='needs --runslow to run')
    for item in items:
        if 'slow' in item.keywords:
            item.add_marker(skip_slow)
