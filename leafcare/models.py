# =============================================================================
# LeafCare API
# models.py - Database Models
#
# SQLAlchemy ORM models for the application database.
# Includes User model for authentication and Recommendation for stored advice.
# =============================================================================

from datetime import datetime, timezone
from .extensions import db


def utcnow():
    return datetime.now(timezone.utc)


def _isoformat(value):
    return value.isoformat() if value else None


class User(db.Model):
    """
    User model for authentication and authorization.

    Roles are stored as a comma-separated list of role names; use the
    ``role_list`` property to read and write them.
    """
    __tablename__ = 'users'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Authentication Fields
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    refresh_token_hash = db.Column(db.String(64), nullable=True)

    # Profile Fields
    name = db.Column(db.String(100), nullable=False)
    tenant_id = db.Column(db.String(64), nullable=True, index=True)

    # Account Status
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    roles = db.Column(db.String(64), default='farmer', nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def role_list(self):
        return [role for role in (self.roles or '').split(',') if role]

    @role_list.setter
    def role_list(self, values):
        # Keep first-seen order, drop duplicates
        self.roles = ','.join(dict.fromkeys(values))

    def has_role(self, role):
        return role in self.role_list

    def to_dict(self):
        """
        Serialize user for API responses.

        Password and refresh-token hashes are never included.
        """
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'roles': self.role_list,
            'isActive': self.is_active,
            'tenantId': self.tenant_id,
            'lastLoginAt': _isoformat(self.last_login_at),
            'createdAt': _isoformat(self.created_at),
            'updatedAt': _isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<User {self.email}>'


class Recommendation(db.Model):
    """
    Generated treatment advice for a classification result.

    ``content`` holds the full generator output; ``severity`` duplicates
    ``content['severity']`` so it can be grouped on in SQL.
    """
    __tablename__ = 'recommendations'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Correlation key supplied by the caller (not unique)
    session_id = db.Column(db.String(128), nullable=False, index=True)

    # Source classification
    classification = db.Column(db.String(100), nullable=False, index=True)
    confidence = db.Column(db.Float, nullable=False)

    # Generated content
    content = db.Column(db.JSON, nullable=False)
    severity = db.Column(db.String(20), nullable=False, index=True)
    generated_by = db.Column(db.String(100), nullable=False)
    prompt_version = db.Column(db.String(20), nullable=False)

    # User feedback
    user_rating = db.Column(db.Integer, nullable=True)
    user_feedback = db.Column(db.Text, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.Index('idx_recommendation_session_created', 'session_id', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'sessionId': self.session_id,
            'imageClassification': self.classification,
            'classificationConfidence': self.confidence,
            'content': self.content,
            'generatedBy': self.generated_by,
            'promptVersion': self.prompt_version,
            'userRating': self.user_rating,
            'userFeedback': self.user_feedback,
            'createdAt': _isoformat(self.created_at),
            'updatedAt': _isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<Recommendation {self.id}: {self.classification} ({self.severity})>'
