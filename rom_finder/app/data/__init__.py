"""Dataset sources, the worker channel and the dataset repository."""
