"""
Liked jobs module: per-user list of bookmarked job ids.
"""

from .factory import create_liked_jobs_module

__all__ = ["create_liked_jobs_module"]
