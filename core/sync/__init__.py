"""
Document synchronization between the editing surface and the tree cache.
"""

from .documents import DocumentSync

__all__ = [
    "DocumentSync"
]
