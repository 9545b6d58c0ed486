"""ImageKit 上传授权与直传封装。

Two halves of the signed-upload exchange live here:

* ``issue_grant`` runs on the server and signs ``token + expire`` with the
  private key (HMAC-SHA1, hex digest), the scheme ImageKit documents for
  client-side uploads.
* ``upload`` runs wherever the file is and posts it straight to the ImageKit
  upload API with a grant obtained from the server.
"""

from __future__ import annotations

import hashlib
import hmac
import io
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.core.errors import ConfigurationError, GrantAcquisitionError, GrantReuseError, UpstreamUploadError
from app.schemas.imagekit import UploadResult

ProgressCallback = Callable[[int, int], None]


def resolve_asset_url(url_endpoint: str, path_or_url: str) -> str:
    """Absolute http(s) URLs pass through; stored paths hang off the delivery endpoint."""
    value = (path_or_url or "").strip()
    if not value:
        raise ValueError("asset path is empty")
    if urlparse(value).scheme.lower() in {"http", "https"}:
        return value
    return f"{url_endpoint.rstrip('/')}/{value.lstrip('/')}"


@dataclass
class AuthorizationGrant:
    """Capability to perform exactly one upload. Never log or persist it."""

    token: str = field(repr=False)
    expire: int
    signature: str = field(repr=False)
    _consumed: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "AuthorizationGrant":
        if not isinstance(payload, dict):
            raise GrantAcquisitionError("grant response is not a JSON object")
        token = payload.get("token")
        signature = payload.get("signature")
        expire = payload.get("expire")
        if not isinstance(token, str) or not token or not isinstance(signature, str) or not signature:
            raise GrantAcquisitionError("grant response is missing token or signature")
        try:
            expire = int(expire)
        except (TypeError, ValueError) as exc:
            raise GrantAcquisitionError("grant response has an invalid expire") from exc
        return cls(token=token, expire=expire, signature=signature)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> None:
        if self._consumed:
            raise GrantReuseError("authorization grant was already used for another upload")
        self._consumed = True

    def as_payload(self) -> dict[str, Any]:
        return {"token": self.token, "expire": self.expire, "signature": self.signature}


class AssetService(Protocol):
    def issue_grant(self) -> AuthorizationGrant: ...

    async def upload(
        self,
        data: bytes,
        *,
        file_name: str,
        folder: str,
        grant: AuthorizationGrant,
        use_unique_file_name: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult: ...


class _ProgressReader(io.BytesIO):
    """BytesIO that reports cumulative bytes handed to the transport."""

    def __init__(self, data: bytes, callback: ProgressCallback | None) -> None:
        super().__init__(data)
        self._total = len(data)
        self._callback = callback

    def read(self, size: int | None = -1) -> bytes:
        chunk = super().read(size)
        if chunk and self._callback is not None:
            self._callback(self.tell(), self._total)
        return chunk


class ImageKitService:
    DEFAULT_UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"

    def __init__(
        self,
        *,
        public_key: str,
        private_key: str | None = None,
        url_endpoint: str,
        upload_url: str = DEFAULT_UPLOAD_URL,
        grant_ttl: int = 1800,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not (public_key or "").strip():
            raise ConfigurationError("ImageKit public key is not configured")
        if not (url_endpoint or "").strip():
            raise ConfigurationError("ImageKit URL endpoint is not configured")
        self._public_key = public_key.strip()
        self._private_key = (private_key or "").strip() or None
        self._url_endpoint = url_endpoint.strip().rstrip("/")
        self._upload_url = upload_url
        self._grant_ttl = int(grant_ttl)
        self._http_client = http_client
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, *, http_client: httpx.AsyncClient | None = None) -> "ImageKitService":
        if not settings.imagekit_private_key:
            raise ConfigurationError("ImageKit private key is not configured")
        return cls(
            public_key=settings.imagekit_public_key,
            private_key=settings.imagekit_private_key,
            url_endpoint=settings.imagekit_url_endpoint,
            upload_url=settings.imagekit_upload_url,
            grant_ttl=settings.imagekit_grant_ttl,
            http_client=http_client,
        )

    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def url_endpoint(self) -> str:
        return self._url_endpoint

    def sign(self, token: str, expire: int) -> str:
        if not self._private_key:
            raise ConfigurationError("ImageKit private key is not configured")
        message = f"{token}{expire}".encode("utf-8")
        return hmac.new(self._private_key.encode("utf-8"), message, hashlib.sha1).hexdigest()

    def issue_grant(self, *, token: str | None = None, expire: int | None = None) -> AuthorizationGrant:
        # Empty/zero values fall back to defaults, mirroring the vendor SDK.
        token = token or str(uuid.uuid4())
        expire = int(expire or 0) or int(time.time()) + self._grant_ttl
        return AuthorizationGrant(token=token, expire=expire, signature=self.sign(token, expire))

    def delivery_url(self, path_or_url: str) -> str:
        return resolve_asset_url(self._url_endpoint, path_or_url)

    async def upload(
        self,
        data: bytes,
        *,
        file_name: str,
        folder: str,
        grant: AuthorizationGrant,
        use_unique_file_name: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        grant.consume()
        form = {
            "fileName": file_name,
            "publicKey": self._public_key,
            "signature": grant.signature,
            "expire": str(grant.expire),
            "token": grant.token,
            "useUniqueFileName": "true" if use_unique_file_name else "false",
            "folder": folder,
        }
        files = {"file": (file_name, _ProgressReader(data, on_progress))}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self._upload_url, data=form, files=files)
            else:
                # No client-side timeout: the grant expiry bounds the attempt.
                async with httpx.AsyncClient(timeout=None) as client:
                    response = await client.post(self._upload_url, data=form, files=files)
        except httpx.HTTPError as exc:
            self._logger.warning("ImageKit upload transport error file=%s size=%s err=%s", file_name, len(data), exc)
            raise UpstreamUploadError(f"upload request failed: {exc}") from exc
        result = self._parse_upload_response(response)
        self._logger.info("ImageKit upload stored file=%s path=%s", file_name, result.filePath)
        return result

    def _parse_upload_response(self, response: httpx.Response) -> UploadResult:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if response.status_code < 200 or response.status_code >= 300:
            detail = payload.get("message") if isinstance(payload, dict) else None
            if not detail:
                detail = (response.text or "")[:300]
            raise UpstreamUploadError(
                f"upload rejected status={response.status_code}: {detail}",
                status_code=response.status_code,
            )
        if not isinstance(payload, dict):
            raise UpstreamUploadError(
                f"upload response is not JSON: {(response.text or '')[:300]}",
                status_code=response.status_code,
            )
        try:
            return UploadResult.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamUploadError(
                "Upload response missing filePath", status_code=response.status_code
            ) from exc
