"""In-memory toy datasets."""

from .synthetic import Dataset, available_datasets, get_dataset, register_dataset

__all__ = ["Dataset", "available_datasets", "get_dataset", "register_dataset"]
