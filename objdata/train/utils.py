import argparse
import datetime
import logging
import os
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from objdata.config import LoaderConfig, load_config
from objdata.dataloader.dataloader import ObjectDataLoader


logger = logging.getLogger(__name__)


def parse_config() -> dict:
    p = argparse.ArgumentParser()
    p.add_argument('--config', type=str, default='objdata/train/config.yaml', help='Path to YAML config file')
    args = p.parse_args()

    config = load_config(args.config)
    if not config:
        raise FileNotFoundError(f"Config not found or empty: {args.config}")
    return config


def build_loader(loader_cfg: dict) -> ObjectDataLoader:
    if not loader_cfg:
        raise ValueError("Loader configuration is required")
    cfg = LoaderConfig.from_dict(loader_cfg)
    cfg.dataset_folder = str(Path(cfg.dataset_folder).resolve())
    return ObjectDataLoader(cfg)


def create_runs_dir(logdir: str) -> Path:
    if logdir is None:
        return None
    ts = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
    runs_root = os.path.join(logdir, ts)
    os.makedirs(runs_root)

    return Path(runs_root)


def plot_batch_visits(visits, batchlist):
    """
    Bar chart of how often each batch id was served, coloured by configuration.
    """
    visits = np.asarray(visits)
    configs = sorted({b.config for b in batchlist})
    color_of = {c: plt.cm.tab20(i % 20) for i, c in enumerate(configs)}

    fig, ax = plt.subplots(figsize=(6, 3))
    ax.bar(np.arange(len(visits)), visits, width=1.0,
           color=[color_of[b.config] for b in batchlist])
    ax.set_xlabel("Batch id")
    ax.set_ylabel("Visits")
    ax.set_title(f"{len(configs)} configurations, {len(batchlist)} batches")
    fig.tight_layout()
    return fig
