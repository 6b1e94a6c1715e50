"""Fatal errors raised while planning or assembling object-model batches.

None of these are meant to be caught and retried: they indicate a corrupt
dataset or a loader configuration that does not fit the data.
"""


class LoaderError(Exception):
    """Base class for all loader failures."""


class DivisibilityError(LoaderError):
    """Total expanded sample count is not a multiple of the batch size."""


class AlignmentError(DivisibilityError):
    """A configuration's expanded sample count is not a multiple of the batch size."""


class ConfigMismatchError(LoaderError):
    """Requested configurations cannot be resolved against the dataset."""


class ShapeInvariantError(LoaderError):
    """An assembled tensor does not have the expected shape."""


class PaddingOverflowError(ShapeInvariantError):
    """More real context objects than the context can hold."""
