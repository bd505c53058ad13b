# =============================================================================
# LeafCare API
# decorators.py - Reusable Decorators
#
# Custom decorators for common functionality including role checks,
# pagination, JSON validation, and database error handling.
# =============================================================================

from functools import wraps
from flask import request, current_app, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt
from sqlalchemy.exc import IntegrityError, OperationalError

from .extensions import db
from .constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from .errors import ForbiddenError, ValidationError, ConflictError, UpstreamUnavailableError


def check_roles(required_roles, caller_roles):
    """
    Role gate.

    Passes when no roles are required or the caller holds at least one
    of them.

    Raises:
        ForbiddenError: Caller holds none of the required roles
    """
    if not required_roles:
        return True
    if set(required_roles) & set(caller_roles or ()):
        return True
    raise ForbiddenError(
        'Insufficient permissions',
        details={'requiredRoles': list(required_roles)}
    )


def roles_required(*roles):
    """
    Require a valid access token and one of the given roles.

    Token failures are answered by the JWT loaders (401); a valid token
    without a matching role raises ForbiddenError (403). The verified
    claims are kept on flask.g for the audit log.

    Usage:
        @users_bp.route('', methods=['GET'])
        @roles_required(ROLE_ADMIN)
        def list_users():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            claims = get_jwt()
            g.jwt_claims = claims

            check_roles(roles, claims.get('roles', []))

            return current_app.ensure_sync(f)(*args, **kwargs)
        return decorated_function
    return decorator


def paginated_query(default_limit=DEFAULT_PAGE_LIMIT, max_limit=MAX_PAGE_LIMIT):
    """
    Parse 'limit' and 'skip' query parameters.

    Passes validated values to the decorated function as keyword arguments.

    Usage:
        @recommendations_bp.route('', methods=['GET'])
        @paginated_query()
        def list_recommendations(limit, skip):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                limit = int(request.args.get('limit', default_limit))
                skip = int(request.args.get('skip', 0))
            except ValueError:
                raise ValidationError('limit and skip must be integers')

            if not 1 <= limit <= max_limit:
                raise ValidationError(f'limit must be between 1 and {max_limit}')
            if skip < 0:
                raise ValidationError('skip must be zero or greater')

            kwargs['limit'] = limit
            kwargs['skip'] = skip

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def validate_json(*required_fields):
    """
    Validate that request contains JSON body with required fields.

    Passes the parsed body to the decorated function as 'data'.

    Usage:
        @auth_bp.route('/login', methods=['POST'])
        @validate_json('email', 'password')
        def login(data):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not request.is_json:
                raise ValidationError('Content-Type must be application/json')

            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                raise ValidationError('Invalid JSON or empty request body')

            missing_fields = [
                field for field in required_fields
                if field not in data or data[field] is None
            ]
            if missing_fields:
                raise ValidationError(
                    'Missing required fields',
                    details={'missingFields': missing_fields}
                )

            kwargs['data'] = data

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def handle_db_errors(f):
    """
    Translate database errors into API errors.

    Rolls back the session before re-raising.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.error(f"Database integrity error: {e}")
            raise ConflictError()

        except OperationalError as e:
            db.session.rollback()
            current_app.logger.error(f"Database operational error: {e}")
            raise UpstreamUnavailableError('Database is temporarily unavailable')

    return decorated_function
