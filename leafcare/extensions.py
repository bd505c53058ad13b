# =============================================================================
# LeafCare API
# extensions.py - Flask Extensions
#
# Extension singletons shared by services and routes. They carry no settings
# of their own; create_app binds them to the app and its config.
# =============================================================================

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# =============================================================================
# Persistence
# users and recommendations tables; pool options only on server databases
# =============================================================================
db = SQLAlchemy()
migrate = Migrate()

# =============================================================================
# Credentials
# jwt signs access tokens with role/tenant claims (refresh tokens use their
# own secret, see services/tokens.py); bcrypt hashes user passwords
# =============================================================================
jwt = JWTManager()
bcrypt = Bcrypt()

# =============================================================================
# HTTP Edge
# Limits, storage and strategy all come from RATELIMIT_* settings, so
# production can point the limiter at Redis and testing can switch it off
# =============================================================================
cors = CORS()
limiter = Limiter(key_func=get_remote_address)
