# =============================================================================
# LeafCare API
# routes/__init__.py - Routes Package
#
# This package contains all API route blueprints organized by feature.
# =============================================================================

from .auth import auth_bp
from .users import users_bp
from .classify import classify_bp
from .recommendations import recommendations_bp
from .health import health_bp

__all__ = [
    'auth_bp',
    'users_bp',
    'classify_bp',
    'recommendations_bp',
    'health_bp'
]
