"""媒体/上传授权相关路由。"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse

from app.core.config import Settings
from app.core.cors import cors_headers
from app.schemas import imagekit as schemas
from app.services.imagekit import ImageKitService

router = APIRouter()

GRANT_METHODS = "GET, OPTIONS"
GRANT_HEADERS = "Content-Type"


def get_imagekit_service(request: Request) -> ImageKitService:
    return request.app.state.imagekit_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _grant_headers(request: Request, settings: Settings) -> dict[str, str]:
    headers = cors_headers(request, settings.cors_origins, methods=GRANT_METHODS, headers=GRANT_HEADERS)
    headers["Cache-Control"] = "no-store"
    return headers


@router.options("/api/auth/imagekit")
async def imagekit_auth_preflight(request: Request, settings: Settings = Depends(get_app_settings)) -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=_grant_headers(request, settings))


@router.get("/api/auth/imagekit", response_model=schemas.AuthorizationGrantResponse)
async def issue_imagekit_grant(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    imagekit: ImageKitService = Depends(get_imagekit_service),
) -> JSONResponse:
    grant = imagekit.issue_grant()
    body = schemas.AuthorizationGrantResponse(**grant.as_payload())
    return JSONResponse(body.model_dump(), status_code=status.HTTP_200_OK, headers=_grant_headers(request, settings))


@router.get("/api/assets/url", response_model=schemas.AssetUrlResponse)
async def resolve_asset_url(
    path: str = Query(..., min_length=1),
    imagekit: ImageKitService = Depends(get_imagekit_service),
) -> schemas.AssetUrlResponse:
    try:
        url = imagekit.delivery_url(path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="path is required") from exc
    return schemas.AssetUrlResponse(url=url)
