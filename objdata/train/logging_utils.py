import logging
from pathlib import Path

import matplotlib.pyplot as plt
from lightning.pytorch.loggers import TensorBoardLogger as PLTensorBoardLogger


def setup_logging(log_file: str = None, level=logging.INFO):
    """
    Initialize Python logging with a console and an optional file handler.
    Call once at program startup.
    """

    # Prevent double initialization
    if logging.getLogger().handlers:
        return

    handlers = []

    # Console
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    ))
    handlers.append(console)

    # Optional file
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        f = logging.FileHandler(log_file, mode="w")
        f.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
        ))
        handlers.append(f)

    logging.basicConfig(level=level, handlers=handlers)


class TensorBoardLogger:
    """
    Logs loader diagnostics to a TensorBoard directory.
    Tracks global step count internally.
    """

    def __init__(self, logdir: str):
        self.logdir = Path(logdir)
        self.logdir.mkdir(parents=True, exist_ok=True)
        self.tb_logger = PLTensorBoardLogger(save_dir=str(self.logdir), name="", version="")
        self.global_step = 0

    def incr_step(self):
        self.global_step += 1

    def log_metrics(self, metrics: dict, split='sampling', step: int = None):
        """
        Log per-step values.

        Args:
            metrics: Dictionary of values (can be tensors or floats)
            step: Optional step override. If None, uses internal global_step.
        """
        if step is None:
            step = self.global_step

        scalars = {}
        for key, value in metrics.items():
            if hasattr(value, 'item'):
                scalars[f"{split}/{key}"] = value.item()
            else:
                scalars[f"{split}/{key}"] = value

        self.tb_logger.log_metrics(scalars, step=step)

    def log_figure(self, fig, name: str, step: int = None, close: bool = True):
        """
        Log a matplotlib figure to TensorBoard.

        Args:
            fig: Matplotlib figure object.
            name: Tag under which the figure is stored.
            step: Optional step, defaults to the internal global_step.
            close: Whether to close the figure after logging to free memory.
        """
        if step is None:
            step = self.global_step

        exp = self.tb_logger.experiment
        exp.add_figure(name, fig, global_step=step)
        exp.flush()
        if close:
            plt.close(fig)

    def finalize(self):
        self.tb_logger.finalize("success")
