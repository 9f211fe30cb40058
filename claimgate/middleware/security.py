"""
Security Headers Middleware

Adds browser hardening headers to every response and, in production,
redirects plain-HTTP requests to HTTPS.

The gateway runs behind a TLS-terminating proxy, so the original scheme is
read from X-Forwarded-Proto.

Example:
    from claimgate.middleware.security import SecurityHeadersMiddleware
    app.add_middleware(SecurityHeadersMiddleware, enforce_https=IS_PRODUCTION)
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, enforce_https: bool = False):
        super().__init__(app)
        self.enforce_https = enforce_https

    async def dispatch(self, request: Request, call_next):
        if self.enforce_https and request.headers.get("x-forwarded-proto") == "http":
            url = request.url.replace(scheme="https")
            response = RedirectResponse(str(url), status_code=301)
        else:
            response = await call_next(request)

        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response
