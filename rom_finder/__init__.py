"""Approximate ROM name lookup over local arcade game datasets."""

__version__ = "0.1.0"
