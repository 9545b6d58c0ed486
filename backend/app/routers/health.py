from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check(request: Request) -> dict:
    return {"status": "ok", "service": request.app.title}
