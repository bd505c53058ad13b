# =============================================================================
# LeafCare API
# services/user_service.py - Credential Store
#
# Creates, looks up, and maintains user accounts. Passwords are hashed with
# bcrypt; plaintext is never stored or logged.
# =============================================================================

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from ..extensions import db, bcrypt
from ..models import User
from ..constants import USER_ROLES, DEFAULT_ROLES, MESSAGES
from ..errors import ConflictError, NotFoundError, ValidationError
from ..utils import (
    normalize_email,
    validate_email,
    validate_password,
    validate_name
)

logger = logging.getLogger(__name__)


def validate_roles(roles):
    """
    Check a role list against the known roles.

    Raises:
        ValidationError: If the list is empty or contains unknown roles
    """
    if not isinstance(roles, (list, tuple)) or not roles:
        raise ValidationError('Roles must be a non-empty list')

    unknown = [role for role in roles if role not in USER_ROLES]
    if unknown:
        raise ValidationError(
            'Invalid role',
            details={'invalid': unknown, 'allowed': list(USER_ROLES)}
        )
    return list(roles)


class UserService:
    """Account storage backed by the users table."""

    def hash_password(self, plaintext):
        return bcrypt.generate_password_hash(plaintext).decode('utf-8')

    def verify_password(self, user, plaintext):
        if not user or not plaintext:
            return False
        try:
            return bcrypt.check_password_hash(user.password_hash, plaintext)
        except ValueError:
            # Malformed stored hash or oversized input
            logger.warning(f"Password check failed for user {user.id}")
            return False

    def find_by_email(self, email):
        return User.query.filter_by(email=normalize_email(email)).first()

    def find_by_id(self, user_id):
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    def get(self, user_id):
        user = self.find_by_id(user_id)
        if not user:
            raise NotFoundError(MESSAGES['USER_NOT_FOUND'])
        return user

    def create_user(self, name, email, password, roles=None, tenant_id=None, is_active=True):
        """
        Create a user account.

        Args:
            name: Display name
            email: Email address (normalized to lower case)
            password: Plaintext password (hashed before storage)
            roles: Role list, defaults to farmer
            tenant_id: Optional cooperative id
            is_active: Initial account status

        Returns:
            User: The persisted user

        Raises:
            ValidationError: Invalid name, email, password or roles
            ConflictError: Email already registered
        """
        email = normalize_email(email)

        is_valid, message = validate_name(name)
        if not is_valid:
            raise ValidationError(message, details={'field': 'name'})
        if not email or not validate_email(email):
            raise ValidationError('Invalid email format', details={'field': 'email'})
        is_valid, message = validate_password(password)
        if not is_valid:
            raise ValidationError(message, details={'field': 'password'})

        roles = validate_roles(roles) if roles is not None else list(DEFAULT_ROLES)

        if self.find_by_email(email):
            raise ConflictError(MESSAGES['EMAIL_TAKEN'])

        user = User(
            name=name.strip(),
            email=email,
            password_hash=self.hash_password(password),
            tenant_id=tenant_id or None,
            is_active=bool(is_active)
        )
        user.role_list = roles

        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            db.session.rollback()
            raise ConflictError(MESSAGES['EMAIL_TAKEN'])

        logger.info(f"User created: {email} roles={user.role_list}")
        return user

    def list_users(self, role=None, is_active=None, tenant_id=None):
        query = User.query

        if role:
            if role not in USER_ROLES:
                raise ValidationError('Invalid role', details={'allowed': list(USER_ROLES)})
            # Role names never contain one another, so substring match is exact
            query = query.filter(User.roles.contains(role))
        if is_active is not None:
            query = query.filter(User.is_active == is_active)
        if tenant_id:
            query = query.filter(User.tenant_id == tenant_id)

        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    def update_user(self, user_id, data):
        """
        Partial update of profile, roles, tenant, or status.

        Passwords cannot be changed here; see change_password().
        """
        user = self.get(user_id)

        if 'password' in data:
            raise ValidationError('Use the change-password endpoint to update passwords')

        if 'email' in data:
            email = normalize_email(data['email'])
            if not validate_email(email):
                raise ValidationError('Invalid email format', details={'field': 'email'})
            if email != user.email and self.find_by_email(email):
                raise ConflictError('Email already in use')
            user.email = email

        if 'name' in data:
            is_valid, message = validate_name(data['name'])
            if not is_valid:
                raise ValidationError(message, details={'field': 'name'})
            user.name = data['name'].strip()

        if 'roles' in data:
            user.role_list = validate_roles(data['roles'])

        if 'tenantId' in data:
            user.tenant_id = data['tenantId'] or None

        if 'isActive' in data:
            user.is_active = bool(data['isActive'])

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Email already in use')

        logger.info(f"User {user.id} updated")
        return user

    def set_active(self, user_id, active):
        user = self.get(user_id)
        user.is_active = active
        if not active:
            # A deactivated account keeps no usable refresh token
            user.refresh_token_hash = None
        db.session.commit()
        logger.info(f"User {user.id} {'activated' if active else 'deactivated'}")
        return user

    def hard_delete(self, user_id):
        user = self.get(user_id)
        db.session.delete(user)
        db.session.commit()
        logger.info(f"User {user_id} permanently deleted")

    def change_password(self, user_id, current_password, new_password):
        user = self.get(user_id)

        if not self.verify_password(user, current_password):
            raise ValidationError('Current password is incorrect')

        is_valid, message = validate_password(new_password)
        if not is_valid:
            raise ValidationError(message, details={'field': 'newPassword'})

        user.password_hash = self.hash_password(new_password)
        db.session.commit()
        logger.info(f"Password changed for user {user.id}")

    def touch_login(self, user):
        user.last_login_at = datetime.now(timezone.utc)

    def statistics(self):
        users = User.query.with_entities(User.roles, User.is_active).all()

        by_role = {}
        for roles, _ in users:
            for role in (roles or '').split(','):
                if role:
                    by_role[role] = by_role.get(role, 0) + 1

        active = sum(1 for _, is_active in users if is_active)
        return {
            'total': len(users),
            'active': active,
            'inactive': len(users) - active,
            'byRole': by_role
        }
