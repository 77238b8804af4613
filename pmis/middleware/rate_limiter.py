"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in pmis/__init__.py with no default limits; this module applies
the limits per route category. The login route carries its own stricter
limit (see ``auth_bp``).

Usage:
    from pmis.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

LOGIN_LIMIT = "10/minute"
WRITE_LIMIT = "120/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:       30/minute (login itself: 10/minute)
        - Project / progress:   120/minute
        - Health, uploads:      exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth")
    if bp:
        limiter.limit("30/minute")(bp)

    for bp_name in ("projects", "progress"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in ("health", "uploads"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.exempt(bp)

    app.logger.info("Rate limiter configured — auth: 30/min (login %s), api: %s", LOGIN_LIMIT, WRITE_LIMIT)
