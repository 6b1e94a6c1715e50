"""objdata package initializer

Expose useful submodules at package level for convenient imports.
"""
from objdata.config import *
from objdata.dataloader import *

__all__ = []
