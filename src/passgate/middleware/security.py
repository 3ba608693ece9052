"""Security headers middleware.

Learn: Adds standard security headers to every response:
- X-Content-Type-Options: prevents MIME-type sniffing
- X-Frame-Options: prevents clickjacking
- Referrer-Policy: no-referrer, so an OAuth callback URL (code + state)
  never leaks to a third party through the Referer header
- Strict-Transport-Security: forces HTTPS (only on HTTPS connections)

Responses under /auth/ carry tokens, so they also get
Cache-Control: no-store and Pragma: no-cache (OAuth 2.0 token response
rules) to keep them out of browser and proxy caches.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

AUTH_PATH_MARKER = "/auth/"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses; no-store on auth responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        if AUTH_PATH_MARKER in request.url.path:
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
        # Only add HSTS on HTTPS connections
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response
