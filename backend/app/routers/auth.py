"""Authentication routes."""

from fastapi import APIRouter, Depends, HTTPException, Response

from app.deps.auth import SESSION_COOKIE, get_auth_service, get_current_user
from app.schemas import auth as schemas
from app.services.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=schemas.TokenResponse)
def login(
    payload: schemas.LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> schemas.TokenResponse:
    user = auth_service.authorize(email=payload.email, password=payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="INVALID_CREDENTIALS")
    access_token = auth_service.create_access_token(user=user)
    expires_in = auth_service.settings.jwt_access_token_expires
    response.set_cookie(
        SESSION_COOKIE,
        access_token,
        max_age=expires_in,
        httponly=True,
        samesite="lax",
        secure=auth_service.settings.is_production,
    )
    return schemas.TokenResponse(accessToken=access_token, expiresIn=expires_in, user=user)


@router.post("/logout", status_code=204)
def logout() -> Response:
    response = Response(status_code=204)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/session", response_model=schemas.SessionUser)
def read_session(user: schemas.SessionUser = Depends(get_current_user)) -> schemas.SessionUser:
    return user
