"""TinyVCS - a small local version-control engine.

TinyVCS tracks snapshots of a working directory as an immutable,
content-addressed commit graph, with branches, checkout, reset and
three-way merges.
"""

__version__ = "0.1.0"
__author__ = "TinyVCS Contributors"

__all__ = ["__version__", "__author__"]
