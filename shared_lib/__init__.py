"""
shared_lib — Cross-component helpers for JellyScan.

Public API:
    PathRewriter, PathRule        -- ordered regex rewrite of local paths to server paths
"""

from shared_lib.path_mapper import PathRewriter, PathRule

__all__ = [
    "PathRewriter",
    "PathRule",
]
