"""Transactional edits of remote repository content."""

from .content_mutator import (
    ContentMutator,
    FileNotInTreeError,
    FileTransform,
    FileUpdateTransaction,
    TransactionStage,
)
from .transforms import TRANSFORMS, replace_loot_version, rewrite_url

__all__ = [
    "ContentMutator",
    "FileNotInTreeError",
    "FileTransform",
    "FileUpdateTransaction",
    "TransactionStage",
    "TRANSFORMS",
    "replace_loot_version",
    "rewrite_url",
]
