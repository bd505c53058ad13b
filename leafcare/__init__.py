# =============================================================================
# LeafCare API
# __init__.py - Package Entry
#
# REST backend for leaf image classification and treatment recommendations.
# =============================================================================

from .app import create_app

__all__ = ['create_app']
