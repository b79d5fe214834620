"""
Subscription module: administrative tier changes.
"""

from .factory import create_subscription_module

__all__ = ["create_subscription_module"]
