"""
Repository module: persistence contract and in-memory implementation.
"""

from contentstore.repository.memory import InMemoryRepository
from contentstore.repository.protocols import ListDerivedContentParams, Repository

__all__ = [
    "Repository",
    "ListDerivedContentParams",
    "InMemoryRepository",
]
