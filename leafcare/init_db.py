# =============================================================================
# LeafCare API
# init_db.py - Database Initialization
#
# Creates the tables and seeds the default admin account.
# Usage: flask --app leafcare.app init-db
#    or: python -m leafcare.init_db
# =============================================================================

from .extensions import db
from .constants import USER_ROLES
from .errors import ValidationError
from .services.user_service import UserService


def seed_admin(email, password, users=None):
    """
    Create the default admin unless an account with that email exists.

    Returns:
        tuple: (User, created)

    Raises:
        ValidationError: No admin password configured
    """
    users = users or UserService()

    existing = users.find_by_email(email)
    if existing:
        return existing, False

    if not password:
        raise ValidationError('DEFAULT_ADMIN_PASSWORD must be set to seed the admin user')

    admin = users.create_user(
        name='System Administrator',
        email=email,
        password=password,
        roles=list(USER_ROLES)
    )
    return admin, True


def init_database(app):
    """
    Initialize the database with tables and the default admin.

    Must be called inside an application context.
    """
    db.create_all()
    print("✓ Database tables created successfully")

    admin, created = seed_admin(
        app.config['DEFAULT_ADMIN_EMAIL'],
        app.config['DEFAULT_ADMIN_PASSWORD'],
        users=app.config.get('USER_SERVICE')
    )
    if created:
        print(f"✓ Admin user created (email: {admin.email})")
    else:
        print(f"✓ Admin user already exists (email: {admin.email})")

    print("\n" + "=" * 50)
    print("Database initialization complete!")
    print("=" * 50)


if __name__ == '__main__':
    from .app import create_app

    application = create_app()
    with application.app_context():
        init_database(application)
