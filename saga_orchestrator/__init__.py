"""Saga models, validation conditions, teardown and periodic-task helpers."""

__version__ = "0.1.0"