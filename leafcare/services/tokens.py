# =============================================================================
# LeafCare API
# services/tokens.py - Token Issuing and Verification
#
# Access tokens are created through Flask-JWT-Extended so that route guards
# can verify them with jwt_required(). Refresh tokens are signed with their
# own secret through PyJWT and are only ever stored as a SHA-256 hash.
# =============================================================================

import uuid
import logging
from datetime import datetime, timezone

import jwt as pyjwt
from flask_jwt_extended import create_access_token

from ..errors import UnauthorizedError
from ..constants import MESSAGES

logger = logging.getLogger(__name__)


class TokenService:
    """
    Mints access/refresh token pairs.

    Args:
        refresh_secret: Secret used only for refresh tokens
        access_expires: timedelta lifetime of access tokens
        refresh_expires: timedelta lifetime of refresh tokens
        algorithm: JWS algorithm for refresh tokens
    """

    REFRESH_TYPE = 'refresh'

    def __init__(self, refresh_secret, access_expires, refresh_expires, algorithm='HS256'):
        if not refresh_secret:
            raise ValueError('A refresh token secret is required')
        self.refresh_secret = refresh_secret
        self.access_expires = access_expires
        self.refresh_expires = refresh_expires
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config):
        return cls(
            refresh_secret=config['JWT_REFRESH_SECRET_KEY'],
            access_expires=config['JWT_ACCESS_TOKEN_EXPIRES'],
            refresh_expires=config['JWT_REFRESH_TOKEN_EXPIRES'],
            algorithm=config.get('JWT_ALGORITHM', 'HS256')
        )

    @staticmethod
    def build_claims(user):
        return {
            'email': user.email,
            'roles': user.role_list,
            'tenant_id': user.tenant_id
        }

    def issue_access_token(self, user):
        """Short-lived token carrying subject, email, roles and tenant id."""
        return create_access_token(
            identity=str(user.id),
            additional_claims=self.build_claims(user),
            expires_delta=self.access_expires
        )

    def issue_refresh_token(self, subject_id):
        now = datetime.now(timezone.utc)
        payload = {
            'sub': str(subject_id),
            'type': self.REFRESH_TYPE,
            # Unique per token so two tokens minted in the same second differ
            'jti': uuid.uuid4().hex,
            'iat': now,
            'exp': now + self.refresh_expires
        }
        return pyjwt.encode(payload, self.refresh_secret, algorithm=self.algorithm)

    def verify_refresh_token(self, token):
        """
        Decode a refresh token.

        Returns:
            dict: Verified claims

        Raises:
            UnauthorizedError: For any invalid, expired, or mistyped token
        """
        if not token or not isinstance(token, str):
            raise UnauthorizedError(MESSAGES['INVALID_REFRESH_TOKEN'])

        try:
            claims = pyjwt.decode(
                token,
                self.refresh_secret,
                algorithms=[self.algorithm],
                options={'require': ['sub', 'exp', 'iat']}
            )
        except pyjwt.ExpiredSignatureError:
            logger.debug("Refresh token expired")
            raise UnauthorizedError(MESSAGES['INVALID_REFRESH_TOKEN'])
        except pyjwt.InvalidTokenError as e:
            logger.debug(f"Refresh token rejected: {e}")
            raise UnauthorizedError(MESSAGES['INVALID_REFRESH_TOKEN'])

        if claims.get('type') != self.REFRESH_TYPE:
            raise UnauthorizedError(MESSAGES['INVALID_REFRESH_TOKEN'])

        return claims

    @property
    def access_expires_in(self):
        """Access token lifetime in seconds."""
        return int(self.access_expires.total_seconds())
