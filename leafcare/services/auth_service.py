# =============================================================================
# LeafCare API
# services/auth_service.py - Authentication Service
#
# Registration, login, token refresh and logout on top of the credential
# store and the token service.
# =============================================================================

import logging

from ..extensions import db
from ..constants import MESSAGES, DEFAULT_ROLES
from ..errors import UnauthorizedError
from ..utils import generate_hash, hashes_match, normalize_email

logger = logging.getLogger(__name__)


class AuthService:
    """
    Args:
        users: UserService used as the credential store
        tokens: TokenService used to mint and verify tokens
    """

    def __init__(self, users, tokens):
        self.users = users
        self.tokens = tokens

    def register(self, name, email, password):
        # Self-registration never chooses its own roles
        user = self.users.create_user(name, email, password, roles=list(DEFAULT_ROLES))
        logger.info(f"New user registered: {user.email}")
        return self._issue_tokens(user)

    def login(self, email, password):
        """
        Authenticate with email and password.

        Unknown email, wrong password and deactivated account all fail with
        the same message.
        """
        user = self.users.find_by_email(email)

        if not user:
            logger.info(f"Login failed for unknown email: {normalize_email(email)}")
            raise UnauthorizedError(MESSAGES['INVALID_CREDENTIALS'])

        password_ok = self.users.verify_password(user, password)

        if not user.is_active:
            logger.warning(f"Login attempt on deactivated account: {user.email}")
            raise UnauthorizedError(MESSAGES['INVALID_CREDENTIALS'])

        if not password_ok:
            logger.info(f"Login failed (bad password): {user.email}")
            raise UnauthorizedError(MESSAGES['INVALID_CREDENTIALS'])

        self.users.touch_login(user)
        logger.info(f"User logged in: {user.email}")
        return self._issue_tokens(user)

    def refresh(self, refresh_token):
        """
        Exchange a refresh token for a new token pair.

        Every failure path raises the same generic error.
        """
        claims = self.tokens.verify_refresh_token(refresh_token)
        user = self.users.find_by_id(claims.get('sub'))

        if (
            user is None
            or not user.is_active
            or not hashes_match(refresh_token, user.refresh_token_hash)
        ):
            logger.info(f"Refresh rejected for subject {claims.get('sub')}")
            raise UnauthorizedError(MESSAGES['INVALID_REFRESH_TOKEN'])

        return self._issue_tokens(user)

    def logout(self, user_id):
        """Invalidate every outstanding refresh token of the user."""
        user = self.users.find_by_id(user_id)
        if user is None:
            return
        user.refresh_token_hash = None
        db.session.commit()
        logger.info(f"User logged out: {user.email}")

    def _issue_tokens(self, user):
        access_token = self.tokens.issue_access_token(user)
        refresh_token = self.tokens.issue_refresh_token(user.id)

        # Only the latest refresh token stays valid
        user.refresh_token_hash = generate_hash(refresh_token)
        db.session.commit()

        return {
            'success': True,
            'accessToken': access_token,
            'refreshToken': refresh_token,
            'tokenType': 'Bearer',
            'expiresIn': self.tokens.access_expires_in,
            'user': {
                'id': user.id,
                'email': user.email,
                'name': user.name,
                'roles': user.role_list
            }
        }
