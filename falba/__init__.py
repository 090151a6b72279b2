"""Gather test results from artifact directories and extract facts and metrics."""

__version__ = "0.1.0"