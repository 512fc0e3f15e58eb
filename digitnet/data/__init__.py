"""IDX dataset reader and MNIST preparation helpers."""

from .idx import format_image, read_data_set, read_test_set, read_train_set, write_idx_pair
from .mnist import MnistData, Split, load_mnist, one_hot, prepare_inputs

__all__ = [
    "MnistData",
    "Split",
    "format_image",
    "load_mnist",
    "one_hot",
    "prepare_inputs",
    "read_data_set",
    "read_test_set",
    "read_train_set",
    "write_idx_pair",
]
