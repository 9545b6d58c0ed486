"""Auth dependencies for FastAPI routes."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.schemas.auth import SessionUser
from app.services.auth_service import AuthService

SESSION_COOKIE = "session_token"

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None = None) -> str | None:
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(SESSION_COOKIE)


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionUser:
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTHORIZATION_REQUIRED")
    return auth_service.session_user(token)


def is_path_allowed(path: str, *, protected_prefixes: list[str], logged_in: bool) -> bool:
    """Paths under a protected prefix need a session; everything else is public."""
    if any(path.startswith(prefix) for prefix in protected_prefixes):
        return logged_in
    return True
