"""
Security headers middleware.

The API only serves JSON and stored uploads, so the policy is strict:
no scripts, no framing, no MIME sniffing. Uploaded images/PDFs are still
viewable inline from the SPA origin via CORS.

Usage:
    from pmis.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'none'; img-src 'self'; frame-ancestors 'none'; base-uri 'none'",
        )

        # Prevent MIME-type sniffing (uploads are served with their stored extension)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")

        response.headers.setdefault("X-Frame-Options", "DENY")

        # Ignored over plain HTTP
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
        )

        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")

        response.headers.setdefault(
            "Permissions-Policy",
            "camera=(), microphone=(), geolocation=(), payment=()"
        )

        response.headers.pop("Server", None)

        return response
