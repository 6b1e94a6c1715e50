import pytest
import torch

from objdata.config import LoaderConfig
from objdata.dataloader.assembler import MAX_OTHER_OBJECTS, OBJECT_DIM
from objdata.dataloader.dataloader import ObjectDataLoader
from objdata.dataloader.errors import AlignmentError, ConfigMismatchError, DivisibilityError
from objdata.dataloader.planner import BatchDescriptor, check_coverage
from objdata.dataloader.store import save_data
from objdata.dataloader.toy import make_toy_dataset


def test_single_config_scenario(make_loader):
    loader = make_loader(['worldm1_np=2_ng=0'], num_examples=4, batch_size=4)
    assert loader.total_samples == 8
    assert loader.num_batches == 2
    assert loader.batchlist == [
        BatchDescriptor('worldm1_np=2_ng=0', 0, 3),
        BatchDescriptor('worldm1_np=2_ng=0', 4, 7),
    ]

    this_x, context_x, y, mask, config, start, end, context_future = loader.sample_sequential_batch()
    assert config == 'worldm1_np=2_ng=0' and (start, end) == (0, 3)
    assert this_x.shape == (4, 2 * OBJECT_DIM)
    assert context_x.shape == (4, MAX_OTHER_OBJECTS, 2 * OBJECT_DIM)
    assert y.shape == (4, 2 * OBJECT_DIM)
    assert mask.shape == (MAX_OTHER_OBJECTS,)
    assert context_future.shape == (4, MAX_OTHER_OBJECTS, 2 * OBJECT_DIM)
    # one real object, nine padded slots
    assert (context_x[:, 1:] == 0).all()
    assert (context_x[:, 0] != 0).any()


def test_sequential_epoch_covers_plan(make_loader):
    configs = ['worldm1_np=1_ng=0', 'worldm1_np=2_ng=1', 'worldm2_np=3_ng=2']
    loader = make_loader(configs, num_examples=4, batch_size=4, shuffle=True, seed=5)
    assert loader.num_batches == (4 + 8 + 12) // 4

    seen = []
    for _ in range(loader.num_batches):
        batch = loader.sample_sequential_batch()
        seen.append(loader.current_sampled_id)
        assert batch.this_x.shape[0] == 4
    assert seen == loader.state.access_order.tolist()
    assert sorted(seen) == list(range(loader.num_batches))

    coverage = check_coverage(loader.batchlist, loader.specified_configs, loader.config_sizes)
    assert all((c == 1).all() for c in coverage.values())


def test_configs_sorted_without_shuffle(make_loader):
    configs = ['worldm2_np=1_ng=0', 'worldm1_np=1_ng=1', 'worldm1_np=1_ng=0']
    loader = make_loader(configs, num_examples=4, batch_size=4)
    assert loader.specified_configs == sorted(configs)
    assert [b.config for b in loader.batchlist] == sorted(configs)


def test_specified_subset(make_loader):
    configs = ['worldm1_np=1_ng=0', 'worldm2_np=1_ng=0', 'worldm3_np=2_ng=0']
    loader = make_loader(configs, num_examples=4, specified_configs=['[1:2-1:1-0:0]'])
    assert loader.specified_configs == ['worldm1_np=1_ng=0', 'worldm2_np=1_ng=0']
    assert loader.num_batches == 2


def test_construction_errors(make_loader):
    with pytest.raises(DivisibilityError):
        make_loader(['worldm1_np=1_ng=0'], num_examples=3, batch_size=2)
    with pytest.raises(AlignmentError):
        make_loader(['worldm1_np=1_ng=0', 'worldm1_np=3_ng=0'], num_examples=2, batch_size=4)
    with pytest.raises(ConfigMismatchError):
        make_loader(['worldm1_np=1_ng=0'], specified_configs=['worldm4'])


def test_random_and_priority(make_loader):
    loader = make_loader(['worldm1_np=2_ng=1', 'worldm1_np=3_ng=0'], num_examples=4, seed=1)
    n = loader.num_batches

    loader.sample_random_batch()
    assert 0 <= loader.current_sampled_id < n
    assert loader.current_batch == -1

    # first epoch of priority sampling is sequential
    for expected in range(n):
        loader.sample_priority_batch(power=1.0)
        assert loader.current_sampled_id == expected
        loader.update_priority(1.0 if expected == 2 else 0.0)
    assert loader.priority_sampler.epoch_count == 2

    for _ in range(5):
        batch = loader.sample_priority_batch(power=1.0)
        assert loader.current_sampled_id == 2
        assert (batch.config, batch.start, batch.end) == tuple(loader.batchlist[2])


def test_next_batch_uses_configured_mode(make_loader):
    loader = make_loader(['worldm1_np=2_ng=0'], num_examples=4, sampling='sequential')
    ids = []
    for _ in range(4):
        loader.next_batch()
        ids.append(loader.current_sampled_id)
    assert ids == [0, 1, 0, 1]


def test_getitem_serves_planned_batch(make_loader):
    loader = make_loader(['worldm1_np=2_ng=0'], num_examples=4)
    assert len(loader) == 2
    batch = loader[1]
    assert (batch.start, batch.end) == (4, 7)
    assert loader.current_sampled_id == 1
    with pytest.raises(IndexError):
        loader[2]


def test_update_priority_before_sampling(make_loader):
    loader = make_loader(['worldm1_np=2_ng=0'], num_examples=4)
    with pytest.raises(RuntimeError):
        loader.update_priority(1.0)


@pytest.mark.io
def test_loader_from_file(tmp_path):
    configs = ['worldm1_np=2_ng=0', 'worldm1_np=2_ng=2']
    save_data(make_toy_dataset(configs, num_examples=4, seed=0), tmp_path / 'trainset.h5')

    cfg = LoaderConfig(dataset_name='trainset', dataset_folder=str(tmp_path), batch_size=8,
                       num_past=2, window_size=4, relative=False)
    loader = ObjectDataLoader(cfg)
    assert loader.specified_configs == configs
    assert loader.num_batches == 2
    batch = loader.next_batch()
    assert batch.this_x.dtype == torch.float32
    assert batch.context_x.shape == (8, MAX_OTHER_OBJECTS, 2 * OBJECT_DIM)


@pytest.mark.io
def test_loader_from_config_file(tmp_path):
    save_data(make_toy_dataset(['worldm3_np=1_ng=1'], num_examples=6, seed=0), tmp_path / 'valset.npz')
    cfg_path = tmp_path / 'config.yaml'
    cfg_path.write_text(
        "loader:\n"
        "  dataset_name: valset\n"
        f"  dataset_folder: {tmp_path}\n"
        "  batch_size: 3\n"
        "  num_past: 1\n"
        "  window_size: 4\n"
    )
    loader = ObjectDataLoader.from_config_file(cfg_path)
    assert loader.num_batches == 2
    assert loader.next_batch().y.shape == (3, 3 * OBJECT_DIM)


def test_config_validation():
    with pytest.raises(ValueError):
        LoaderConfig(num_past=4, window_size=4)
    with pytest.raises(ValueError):
        LoaderConfig(batch_size=0)
    with pytest.raises(ValueError):
        LoaderConfig(sampling='greedy')
    with pytest.raises(KeyError):
        LoaderConfig.from_dict({'batchsize': 4})
    assert LoaderConfig(specified_configs='worldm1').specified_configs == ['worldm1']
