import os
from typing import Iterable, Optional, Set

import jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response


class DashboardAuthMiddleware(BaseHTTPMiddleware):
    """Require an HS256 bearer token on the admin dashboard routes only."""

    def __init__(self, app, protected_prefixes: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.protected_prefixes: Set[str] = set(protected_prefixes or [])

    def _secret(self) -> Optional[str]:
        return os.getenv("DASHBOARD_JWT_SECRET")

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if request.method == "OPTIONS" or not any(path.startswith(prefix) for prefix in self.protected_prefixes):
            return await call_next(request)

        secret = self._secret()
        if not secret:
            return JSONResponse({"error": "Auth secret not configured"}, status_code=500)

        auth_header = request.headers.get("Authorization") or ""
        if not auth_header.lower().startswith("bearer "):
            return JSONResponse({"error": "Missing bearer token"}, status_code=401)

        token = auth_header.split(" ", 1)[1].strip()
        if not token:
            return JSONResponse({"error": "Missing bearer token"}, status_code=401)

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=["HS256"],
                options={"verify_aud": False},
            )
        except jwt.PyJWTError:
            return JSONResponse({"error": "Invalid token"}, status_code=401)

        user_id = payload.get("sub") or payload.get("user_id")
        if not user_id:
            return JSONResponse({"error": "Token missing user identifier"}, status_code=401)

        request.state.user_id = user_id
        request.state.email = payload.get("email")
        return await call_next(request)
