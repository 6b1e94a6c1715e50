"""Sweep a loader and log what it serves.

Usage:
    python -m objdata.train.inspect_loader --config objdata/train/config.yaml

Logs one scalar set per served batch and, at the end, a histogram of batch
visits to TensorBoard under ``<logdir>/<timestamp>``.
"""
import logging
from dataclasses import dataclass

import numpy as np
import yaml
from tqdm import tqdm

from objdata.dataloader.planner import check_coverage
from objdata.train.logging_utils import TensorBoardLogger, setup_logging
from objdata.train.utils import build_loader, create_runs_dir, parse_config, plot_batch_visits
from objdata.utils import seed_all_modules


@dataclass
class InspectConfig:
    seed: int = 10
    num_steps: int = 0          # 0 = one pass over the batch list
    logdir: str = 'runs'
    log_every: int = 1
    # use the mean squared target as the priority weight of each served batch
    feed_priority: bool = True


def main():
    config = parse_config()
    inspect_cfg = InspectConfig(**config.get('inspect', {}))
    runs_dir = create_runs_dir(inspect_cfg.logdir)
    setup_logging(str(runs_dir / "inspect.log"))
    logger = logging.getLogger(__name__)
    tb_logger = TensorBoardLogger(str(runs_dir))
    logger.info("Inspecting loader with configuration:")
    for key, value in config.items():
        logger.info(f"{key}: {value}")
    with open(runs_dir / "config.yaml", 'w') as f:
        yaml.dump(config, f)

    seed_all_modules(inspect_cfg.seed)
    loader = build_loader(config['loader'])

    coverage = check_coverage(loader.batchlist, loader.specified_configs, loader.config_sizes)
    for config_name, counts in coverage.items():
        if (counts != 1).any():
            logger.warning(f"{config_name}: {(counts == 0).sum()} samples uncovered, "
                           f"{(counts > 1).sum()} covered more than once")

    num_steps = inspect_cfg.num_steps or loader.num_batches
    visits = np.zeros(loader.num_batches, dtype=np.int64)
    for step in tqdm(range(num_steps), desc="Sampling:"):
        batch = loader.next_batch()
        batch_id = loader.current_sampled_id
        visits[batch_id] += 1

        weight = float(batch.y.pow(2).mean())
        if inspect_cfg.feed_priority:
            loader.update_priority(weight)

        if step % inspect_cfg.log_every == 0:
            tb_logger.log_metrics({
                "batch_id": batch_id,
                "target_msq": weight,
                "context_abs_mean": batch.context_x.abs().mean(),
                "priority_epoch": loader.priority_sampler.epoch_count,
            })
        tb_logger.incr_step()

    tb_logger.log_figure(plot_batch_visits(visits, loader.batchlist), "sampling/batch_visits")
    tb_logger.finalize()
    logger.info(
        f"Served {num_steps} batches: {(visits > 0).sum()}/{loader.num_batches} distinct ids, "
        f"max visits {visits.max()}"
    )


if __name__ == "__main__":
    main()
