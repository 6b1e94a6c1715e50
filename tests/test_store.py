import h5py
import numpy as np
import pytest
import torch
from pathlib import Path

from objdata.dataloader.store import load_data, save_data, split_key


def make_h5(path: Path, N=5, P=3, G=2, T=6, D=8):
    particles = np.random.randn(N, P, T, D).astype(np.float32)
    goos = np.random.rand(N, G, D).astype(np.float32)
    mask = np.zeros(10, dtype=np.float32)
    mask[(P - 1) + G - 1] = 1
    with h5py.File(path, 'w') as f:
        f.create_dataset(f'worldm1_np={P}_ng={G}particles', data=particles)
        f.create_dataset(f'worldm1_np={P}_ng={G}goos', data=goos)
        f.create_dataset(f'worldm1_np={P}_ng={G}mask', data=mask)
        f.create_dataset('worldm2_np=1_ng=0particles', data=particles[:, :1])
        f.create_dataset('worldm2_np=1_ng=0goos', data=np.zeros(1))
        f.create_dataset('worldm2_np=1_ng=0mask', data=np.zeros(10))
    return particles, goos


@pytest.mark.io
def test_load_h5_dataset(tmp_path):
    particles, goos = make_h5(tmp_path / 'trainset.h5')

    ds = load_data('trainset', tmp_path)
    assert set(ds) == {'worldm1_np=3_ng=2', 'worldm2_np=1_ng=0'}

    rec = ds['worldm1_np=3_ng=2']
    assert isinstance(rec.particles, torch.Tensor)
    assert rec.particles.shape == (5, 3, 6, 8)
    assert rec.num_samples == 15
    assert rec.num_goos == 2
    assert rec.window_size == 6
    assert np.allclose(rec.goos.numpy(), goos)
    assert rec.mask.shape == (10,)

    empty = ds['worldm2_np=1_ng=0']
    assert empty.goos is None
    assert empty.num_goos == 0
    assert empty.num_samples == 5


@pytest.mark.io
@pytest.mark.parametrize('filename', ['data.h5', 'data.npz'])
def test_save_and_reload(tmp_path, filename):
    make_h5(tmp_path / 'src.h5')
    ds = load_data('src.h5', tmp_path)
    save_data(ds, tmp_path / filename)

    reloaded = load_data('data', tmp_path)
    assert set(reloaded) == set(ds)
    for config, rec in ds.items():
        assert torch.equal(reloaded[config].particles, rec.particles)
        assert torch.equal(reloaded[config].mask, rec.mask)
        assert (reloaded[config].goos is None) == (rec.goos is None)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_data('nope', tmp_path)


def test_split_key():
    assert split_key('worldm1_np=2_ng=0particles') == ('worldm1_np=2_ng=0', 'particles')
    assert split_key('worldm1_np=2_ng=0mask') == ('worldm1_np=2_ng=0', 'mask')
    with pytest.raises(ValueError):
        split_key('worldm1_np=2_ng=0velocities')
    with pytest.raises(ValueError):
        split_key('goos')


@pytest.mark.io
def test_incomplete_configuration(tmp_path):
    with h5py.File(tmp_path / 'broken.h5', 'w') as f:
        f.create_dataset('worldm1_np=1_ng=0particles', data=np.zeros((2, 1, 4, 8)))
    with pytest.raises(KeyError):
        load_data('broken', tmp_path)


@pytest.mark.io
def test_hdf5_group_is_rejected(tmp_path):
    make_h5(tmp_path / 'grouped.h5')
    with h5py.File(tmp_path / 'grouped.h5', 'a') as f:
        f.create_group('worldm3_np=1_ng=0particles')
    with pytest.raises(ValueError, match='not a dataset'):
        load_data('grouped', tmp_path)
