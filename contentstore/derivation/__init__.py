"""
Derivation module: depth-bounded parent/child content trees.
"""

from contentstore.derivation.graph import DerivationGraph

__all__ = ["DerivationGraph"]
