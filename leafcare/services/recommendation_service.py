# =============================================================================
# LeafCare API
# services/recommendation_service.py - Recommendation Store
#
# Generates, persists and queries treatment recommendations, and collects
# user feedback and aggregate analytics over them.
# =============================================================================

import math
import time
import logging
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Recommendation, utcnow
from ..constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, MESSAGES
from ..errors import GenerationError, NotFoundError, ValidationError
from .generators import normalize_content

logger = logging.getLogger(__name__)


class RecommendationService:
    """
    Args:
        generator: Active RecommendationGenerator, chosen at startup
    """

    def __init__(self, generator):
        self.generator = generator

    # =========================================================================
    # Generation
    # =========================================================================

    def generate(self, classification, confidence, session_id, additional_context=None):
        """
        Generate and persist a recommendation.

        Generator failures are reported as success=False; nothing is stored
        in that case.

        Returns:
            dict: success, message, data (on success), processingTimeMs
        """
        start_time = time.perf_counter()

        if not isinstance(classification, str) or not classification.strip():
            raise ValidationError('classification must be a non-empty string')
        if not isinstance(session_id, str) or not session_id.strip():
            raise ValidationError('sessionId must be a non-empty string')
        if additional_context is not None and not isinstance(additional_context, str):
            raise ValidationError('additionalContext must be a string')
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValidationError('confidence must be a number between 0 and 1')
        confidence = float(confidence)
        if not 0.0 <= confidence <= 1.0:
            raise ValidationError('confidence must be a number between 0 and 1')

        logger.info(f"Generating recommendation for session {session_id}: {classification}")

        try:
            content = self.generator.generate(classification, confidence, additional_context)
        except GenerationError as e:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            logger.error(
                f"Recommendation generation failed ({type(e).__name__}, "
                f"{e.status_code}): {e.message}"
            )
            return {
                'success': False,
                'message': e.message,
                'processingTimeMs': elapsed_ms
            }

        content = normalize_content(content, confidence)

        recommendation = Recommendation(
            session_id=session_id,
            classification=classification,
            confidence=confidence,
            content=content,
            severity=content['severity'],
            generated_by=self.generator.name,
            prompt_version=self.generator.prompt_version
        )
        db.session.add(recommendation)
        db.session.commit()

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(f"Recommendation {recommendation.id} stored in {elapsed_ms}ms")

        return {
            'success': True,
            'message': MESSAGES['RECOMMENDATION_CREATED'],
            'data': recommendation.to_dict(),
            'processingTimeMs': elapsed_ms
        }

    # =========================================================================
    # Queries
    # =========================================================================

    def list(self, session_id=None, classification=None, limit=DEFAULT_PAGE_LIMIT, skip=0):
        """
        Newest-first page of recommendations.

        Returns:
            dict: recommendations, pagination {total, page, limit, totalPages}
        """
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise ValidationError(f'limit must be between 1 and {MAX_PAGE_LIMIT}')
        if skip < 0:
            raise ValidationError('skip must be zero or greater')

        query = Recommendation.query
        if session_id:
            query = query.filter(Recommendation.session_id == session_id)
        if classification:
            query = query.filter(Recommendation.classification == classification)

        total = query.count()
        items = query.order_by(
            Recommendation.created_at.desc(),
            Recommendation.id.desc()
        ).offset(skip).limit(limit).all()

        return {
            'recommendations': [item.to_dict() for item in items],
            'pagination': {
                'total': total,
                'page': skip // limit + 1,
                'limit': limit,
                'totalPages': math.ceil(total / limit)
            }
        }

    def get(self, recommendation_id):
        recommendation = db.session.get(Recommendation, recommendation_id)
        if recommendation is None:
            raise NotFoundError(f'Recommendation with ID {recommendation_id} not found')
        return recommendation

    def submit_feedback(self, recommendation_id, rating, feedback=None):
        """
        Record a 1-5 rating and optional comment.

        Concurrent submissions overwrite each other; the last write wins.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError('rating must be an integer between 1 and 5')

        recommendation = self.get(recommendation_id)
        recommendation.user_rating = rating
        if feedback is not None:
            recommendation.user_feedback = feedback
        recommendation.updated_at = utcnow()
        db.session.commit()

        logger.info(f"Feedback submitted for recommendation {recommendation_id}: {rating}/5")
        return recommendation

    # =========================================================================
    # Analytics
    # =========================================================================

    def count_by_classification(self):
        rows = db.session.query(
            Recommendation.classification,
            db.func.count(Recommendation.id).label('count'),
            db.func.avg(Recommendation.confidence).label('avg_confidence'),
            db.func.avg(Recommendation.user_rating).label('avg_rating')
        ).group_by(Recommendation.classification)\
         .order_by(db.func.count(Recommendation.id).desc())\
         .all()

        return [
            {
                'classification': row.classification,
                'count': row.count,
                'avgConfidence': float(row.avg_confidence) if row.avg_confidence is not None else None,
                'avgRating': float(row.avg_rating) if row.avg_rating is not None else None
            }
            for row in rows
        ]

    def average_rating(self):
        """Mean rating over rated recommendations only, or None."""
        value = db.session.query(
            db.func.avg(Recommendation.user_rating)
        ).filter(Recommendation.user_rating.isnot(None)).scalar()
        return float(value) if value is not None else None

    def count_by_severity(self):
        rows = db.session.query(
            Recommendation.severity,
            db.func.count(Recommendation.id).label('count')
        ).group_by(Recommendation.severity)\
         .order_by(db.func.count(Recommendation.id).desc())\
         .all()

        return [{'severity': row.severity, 'count': row.count} for row in rows]

    def analytics(self):
        return {
            'totalRecommendations': Recommendation.query.count(),
            'classificationsStats': self.count_by_classification(),
            'averageRating': self.average_rating(),
            'severityDistribution': self.count_by_severity(),
            'generatedAt': datetime.now(timezone.utc).isoformat()
        }

    # =========================================================================
    # Health
    # =========================================================================

    def health(self):
        """
        Probe the database and the active generator.

        Returns:
            dict: status (healthy, degraded or unhealthy), database, generator
        """
        try:
            db.session.execute(text('SELECT 1'))
            database_ok = True
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database health check failed: {e}")
            database_ok = False

        generator_ok = bool(self.generator.health_check())

        if database_ok and generator_ok:
            status = 'healthy'
        elif database_ok or generator_ok:
            status = 'degraded'
        else:
            status = 'unhealthy'

        return {
            'status': status,
            'database': 'connected' if database_ok else 'disconnected',
            'generator': {
                'name': self.generator.name,
                'status': 'healthy' if generator_ok else 'unhealthy'
            },
            'timestamp': datetime.now(timezone.utc).isoformat()
        }
