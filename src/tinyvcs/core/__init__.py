"""Core engine layer for TinyVCS.

This module provides the version-control operations: staging and commits,
branches, checkout, reset, merge and history queries.
"""

from tinyvcs.core.checkout import CheckoutEngine
from tinyvcs.core.errors import VCSError
from tinyvcs.core.merge import MergeEngine, MergeResult, MergeStatus
from tinyvcs.core.refs import RefTable
from tinyvcs.core.repository import Repository
from tinyvcs.core.staging import AddStatus, RemoveStatus, StagingManager

__all__ = [
    "Repository",
    "RefTable",
    "StagingManager",
    "AddStatus",
    "RemoveStatus",
    "CheckoutEngine",
    "MergeEngine",
    "MergeResult",
    "MergeStatus",
    "VCSError",
]
