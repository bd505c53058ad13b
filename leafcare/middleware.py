# =============================================================================
# LeafCare API
# middleware.py - Request Pipeline
#
# Ordered request stages run around every view. Each stage may implement
# before() and after(response); the pipeline is installed on the app with a
# single before_request/after_request pair.
# =============================================================================

import json
import time
import uuid
import logging
from datetime import datetime, timezone

from flask import g, request

audit_logger = logging.getLogger('leafcare.audit')


class RequestStage:
    """Base stage; both hooks are optional."""

    def before(self):
        return None

    def after(self, response):
        return response


class RequestContextStage(RequestStage):
    """
    Assigns a request id and starts the request timer.

    Honors an incoming X-Request-ID header and echoes the id back.
    """
    HEADER = 'X-Request-ID'

    def before(self):
        g.request_id = request.headers.get(self.HEADER) or uuid.uuid4().hex
        g.request_started = time.perf_counter()

    def after(self, response):
        request_id = g.get('request_id')
        if request_id:
            response.headers[self.HEADER] = request_id
        return response


class AuditLogStage(RequestStage):
    """
    Writes one structured audit line per request.

    Caller identity comes from the verified token claims stored on
    flask.g by the role guard; anonymous requests log null identity.
    """

    def __init__(self, logger=None):
        self.logger = logger or audit_logger

    def after(self, response):
        claims = g.get('jwt_claims') or {}
        started = g.get('request_started')
        duration_ms = int((time.perf_counter() - started) * 1000) if started else None

        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'requestId': g.get('request_id'),
            'userId': claims.get('sub'),
            'email': claims.get('email'),
            'roles': claims.get('roles'),
            'tenantId': claims.get('tenant_id'),
            'method': request.method,
            'path': request.path,
            'statusCode': response.status_code,
            'duration': duration_ms,
            'ip': request.headers.get('X-Forwarded-For', request.remote_addr),
            'userAgent': request.headers.get('User-Agent')
        }

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        self.logger.log(level, json.dumps(entry))
        return response


class RequestPipeline:
    """
    Ordered list of stages.

    before() hooks run in order; after() hooks run in reverse order so the
    first stage sees the final response.
    """

    def __init__(self, stages=None):
        self.stages = list(stages or [])

    def add(self, stage):
        self.stages.append(stage)
        return self

    def run_before(self):
        for stage in self.stages:
            result = stage.before()
            if result is not None:
                return result
        return None

    def run_after(self, response):
        for stage in reversed(self.stages):
            response = stage.after(response)
        return response

    def init_app(self, app):
        app.before_request(self.run_before)
        app.after_request(self.run_after)


def default_pipeline():
    return RequestPipeline([RequestContextStage(), AuditLogStage()])
