# =============================================================================
# LeafCare API
# services/__init__.py - Services Package
#
# This package contains business logic services: accounts and tokens,
# the classifier proxy, and recommendation generation and storage.
# =============================================================================

from .tokens import TokenService
from .user_service import UserService
from .auth_service import AuthService
from .classifier import ClassifierClient
from .generators import (
    TemplateRecommendationGenerator,
    OpenAIRecommendationGenerator,
    build_generator
)
from .recommendation_service import RecommendationService

__all__ = [
    'TokenService',
    'UserService',
    'AuthService',
    'ClassifierClient',
    'TemplateRecommendationGenerator',
    'OpenAIRecommendationGenerator',
    'build_generator',
    'RecommendationService'
]
