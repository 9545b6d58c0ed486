"""FastAPI 主入口，聚合各领域路由。"""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.deps.auth import extract_token, is_path_allowed
from app.routers import auth, health, imagekit
from app.services.auth_service import AuthService
from app.services.imagekit import ImageKitService


def create_app(settings: Settings | None = None, *, imagekit_service: ImageKitService | None = None) -> FastAPI:
    # Both raise ConfigurationError before any request is served.
    settings = settings or get_settings()
    imagekit_service = imagekit_service or ImageKitService.from_settings(settings)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger = logging.getLogger("app")

    app = FastAPI(title=settings.app_name, version="0.1.0")
    app.state.settings = settings
    app.state.imagekit_service = imagekit_service
    app.state.auth_service = AuthService(settings)

    protected_prefixes = settings.protected_prefixes

    @app.middleware("http")
    async def protect_private_paths(request: Request, call_next):
        path = request.url.path
        if any(path.startswith(prefix) for prefix in protected_prefixes):
            token = extract_token(request)
            logged_in = False
            if token:
                try:
                    app.state.auth_service.session_user(token)
                    logged_in = True
                except HTTPException:
                    logged_in = False
            if not is_path_allowed(path, protected_prefixes=protected_prefixes, logged_in=logged_in):
                logger.info("Rejected unauthenticated request to %s", path)
                return JSONResponse({"detail": "AUTHORIZATION_REQUIRED"}, status_code=401)
        return await call_next(request)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(imagekit.router, tags=["imagekit"])
    logger.info("%s ready (env=%s)", settings.app_name, settings.app_env)
    return app


app = create_app()
