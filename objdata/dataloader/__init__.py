from objdata.dataloader.assembler import Batch, ExampleAssembler, MAX_OTHER_OBJECTS, OBJECT_DIM
from objdata.dataloader.configs import convert2config, expand_abbreviations, resolve_configs
from objdata.dataloader.dataloader import ObjectDataLoader
from objdata.dataloader.errors import (AlignmentError, ConfigMismatchError, DivisibilityError, LoaderError,
                                       PaddingOverflowError, ShapeInvariantError)
from objdata.dataloader.planner import BatchDescriptor, compute_batches, count_examples
from objdata.dataloader.priority_sampler import PrioritySampler
from objdata.dataloader.sampling import SamplingMode, SamplingState
from objdata.dataloader.store import ConfigRecord, load_data, save_data
from objdata.dataloader.toy import make_toy_dataset
