import gc
import logging
import random

import numpy as np
import torch

logger = logging.getLogger(__name__)


def parse_device(device_pref: str):
    mps_available = getattr(torch.backends, 'mps', None) is not None and torch.backends.mps.is_available()
    cuda_available = torch.cuda.is_available()

    if device_pref == 'auto':
        if cuda_available:
            device_pref = 'cuda'
        elif mps_available:
            device_pref = 'mps'
        else:
            device_pref = 'cpu'
    elif device_pref == 'cuda' and not cuda_available:
        logger.warning("CUDA not available, switching to CPU.")
        device_pref = 'cpu'
    elif device_pref == 'mps' and not mps_available:
        logger.warning("MPS not available, switching to CPU.")
        device_pref = 'cpu'

    return torch.device(device_pref)


def seed_all_modules(seed: int):
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)
    torch.backends.cudnn.deterministic = True
    torch.backends.cudnn.benchmark = False


def release_memory(device: torch.device = None):
    """Reclaim memory now instead of waiting for the collector.

    Called after the loader is built and after every assembled batch, since
    each batch materializes the full expanded tensors of a configuration.
    """
    gc.collect()
    if device is not None and device.type == 'cuda':
        torch.cuda.empty_cache()
