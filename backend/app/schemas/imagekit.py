from pydantic import BaseModel, ConfigDict, Field


class AuthorizationGrantResponse(BaseModel):
    token: str
    expire: int
    signature: str


class UploadResult(BaseModel):
    """Subset of the ImageKit upload response the app relies on."""

    model_config = ConfigDict(extra="ignore")

    filePath: str = Field(..., min_length=1)
    name: str | None = None
    fileId: str | None = None
    url: str | None = None


class AssetUrlResponse(BaseModel):
    url: str
