"""Content store — dated moment files and images in a GitHub repository."""

from .github import (
    AppendConflict,
    DatedFile,
    GitHubStore,
    PublishResult,
    StoreConflict,
    StoreError,
    StoreResponseError,
)

__all__ = [
    "AppendConflict",
    "DatedFile",
    "GitHubStore",
    "PublishResult",
    "StoreConflict",
    "StoreError",
    "StoreResponseError",
]
