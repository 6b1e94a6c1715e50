import pytest

from objdata.config import LoaderConfig
from objdata.dataloader.dataloader import ObjectDataLoader
from objdata.dataloader.toy import make_toy_dataset


def pytest_addoption(parser):
    parser.addoption(
        "--no-io", action="store_true", default=False, help="skip tests that write dataset files"
    )

def pytest_configure(config):
    config.addinivalue_line("markers", "io: mark test as writing dataset files")

def pytest_collection_modifyitems(config, items):
    if config.getoption("--no-io"):
        skip_io = pytest.mark.skip(reason="--no-io given")
        for item in items:
            if "io" in item.keywords:
                item.add_marker(skip_io)


@pytest.fixture
def make_loader():
    """Build a loader over an in-memory toy dataset."""
    def _make(configs, num_examples=4, windowsize=4, data_seed=0, dataset=None, **kwargs):
        if dataset is None:
            dataset = make_toy_dataset(configs, num_examples=num_examples, windowsize=windowsize, seed=data_seed)
        kwargs.setdefault('batch_size', 4)
        kwargs.setdefault('num_past', 2)
        kwargs.setdefault('window_size', windowsize)
        cfg = LoaderConfig(**kwargs)
        return ObjectDataLoader(cfg, dataset=dataset)
    return _make
