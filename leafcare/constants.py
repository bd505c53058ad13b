"""
LeafCare - Shared Constants
Roles, enumerations and fixed labels used across services and routes
"""

# =============================================================================
# User Roles
# =============================================================================
ROLE_FARMER = 'farmer'
ROLE_MANAGER = 'manager'
ROLE_ADMIN = 'admin'

USER_ROLES = (ROLE_FARMER, ROLE_MANAGER, ROLE_ADMIN)
DEFAULT_ROLES = [ROLE_FARMER]

# Role sets used by route guards
ANY_ROLE = USER_ROLES
STAFF_ROLES = (ROLE_MANAGER, ROLE_ADMIN)

# =============================================================================
# Classification Labels
# The classifier reports a binary healthy/unhealthy status
# =============================================================================
CLASS_HEALTHY = 'healthy'
CLASS_DISEASED = 'angular_leaf_spot'

# =============================================================================
# Recommendation Enumerations
# =============================================================================
SEVERITY_MILD = 'mild'
SEVERITY_MODERATE = 'moderate'
SEVERITY_SEVERE = 'severe'
SEVERITY_LEVELS = (SEVERITY_MILD, SEVERITY_MODERATE, SEVERITY_SEVERE)

PRIORITY_LEVELS = ('high', 'medium', 'low')
DEFAULT_PRIORITY = 'medium'

# Confidence above which a disease detection counts as "moderate",
# and above which it counts as "mild"; anything lower is "severe"
SEVERITY_THRESHOLDS = {
    SEVERITY_MODERATE: 0.8,
    SEVERITY_MILD: 0.6
}

PROMPT_VERSION = '1.0.0'
DEFAULT_SOURCE_RELIABILITY = 0.85

# =============================================================================
# Pagination
# =============================================================================
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

# =============================================================================
# API Response Messages
# =============================================================================
MESSAGES = {
    'INVALID_CREDENTIALS': 'Invalid credentials',
    'INVALID_REFRESH_TOKEN': 'Invalid refresh token',
    'EMAIL_TAKEN': 'Email already registered',
    'USER_NOT_FOUND': 'User not found',
    'NO_IMAGE': 'No image file provided',
    'CLASSIFIER_UNAVAILABLE': 'Failed to classify image',
    'RECOMMENDATION_CREATED': 'Recommendation generated successfully',
}
