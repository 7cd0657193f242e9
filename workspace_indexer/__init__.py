"""
workspace-indexer command-line package.
"""

__version__ = "1.0.0"
