from typing import Callable, Dict, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Server": "FastAPI",
}

PROD_HEADERS = {
    **BASE_HEADERS,
    # Prevent clickjacking attacks
    "X-Frame-Options": "DENY",
    # HTTPS only
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    # JSON API: nothing to render, nothing to embed
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), payment=()",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-site",
}

DEV_HEADERS = {
    **BASE_HEADERS,
    "X-Frame-Options": "SAMEORIGIN",
    # Swagger UI needs inline scripts and CDN assets
    "Content-Security-Policy": "default-src 'self' 'unsafe-inline' 'unsafe-eval' https:; img-src 'self' data: https: http:;",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to every response"""

    def __init__(
        self,
        app,
        headers: Optional[Dict[str, str]] = None,
        custom_headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(app)
        self.headers = {**(headers or PROD_HEADERS), **(custom_headers or {})}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for header_name, header_value in self.headers.items():
            response.headers[header_name] = header_value

        return response


class ProdSecurityMiddleware(SecurityHeadersMiddleware):
    def __init__(self, app, custom_headers: Optional[Dict[str, str]] = None):
        super().__init__(app, PROD_HEADERS, custom_headers)


class DevSecurityMiddleware(SecurityHeadersMiddleware):
    def __init__(self, app, custom_headers: Optional[Dict[str, str]] = None):
        super().__init__(app, DEV_HEADERS, custom_headers)
