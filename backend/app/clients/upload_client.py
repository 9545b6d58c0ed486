"""Client side of the signed upload exchange.

Each upload attempt walks ``idle -> validating -> requesting_grant ->
uploading -> succeeded|failed`` (or ``cancelled``). Size limits are checked
before any network call. A fresh grant is then fetched from the grant endpoint
for every attempt and is awaited before anything is transmitted. Failures
never escape: they become a notification plus a failed :class:`UploadOutcome`,
and the owning client goes back to ``idle``.

Usage::

    client = UploadClient(config, upload_type="image", folder="books/covers",
                          on_file_change=save_cover_path)
    outcome = await client.upload("cover.png", data)

or, to watch progress::

    attempt = client.start("cover.png", data)
    async for event in attempt.progress():
        print(event.percent)
    outcome = await attempt.result()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import AsyncIterator, Awaitable, Callable

import httpx
from pydantic import BaseModel

from app.clients.notifications import LoggingNotifier, Notification, Notifier
from app.core.config import Settings
from app.core.errors import (
    GrantAcquisitionError,
    UploadError,
    UploadValidationError,
    UpstreamUploadError,
)
from app.schemas.imagekit import UploadResult
from app.services.imagekit import AssetService, AuthorizationGrant, ImageKitService, resolve_asset_url

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
GRANT_PATH = "/api/auth/imagekit"

GrantProvider = Callable[[], Awaitable[AuthorizationGrant]]


class UploadType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class UploadConstraint:
    max_bytes: int

    @property
    def limit_mb(self) -> int:
        return self.max_bytes // MIB


UPLOAD_CONSTRAINTS: dict[UploadType, UploadConstraint] = {
    UploadType.IMAGE: UploadConstraint(max_bytes=20 * MIB),
    UploadType.VIDEO: UploadConstraint(max_bytes=50 * MIB),
}


class UploadState(str, Enum):
    IDLE = "idle"
    REQUESTING_GRANT = "requesting_grant"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({UploadState.SUCCEEDED, UploadState.FAILED, UploadState.CANCELLED})


@dataclass(frozen=True)
class ProgressEvent:
    loaded: int
    total: int

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.loaded / self.total * 100)


@dataclass(frozen=True)
class UploadOutcome:
    state: UploadState
    result: UploadResult | None = None
    error: UploadError | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.state is UploadState.SUCCEEDED


class UploadClientConfig(BaseModel):
    """Everything the browser-side half needs. Never holds the private key."""

    public_key: str
    url_endpoint: str
    api_endpoint: str
    upload_url: str = ImageKitService.DEFAULT_UPLOAD_URL

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadClientConfig":
        return cls(
            public_key=settings.imagekit_public_key,
            url_endpoint=settings.imagekit_url_endpoint,
            api_endpoint=settings.api_endpoint,
            upload_url=settings.imagekit_upload_url,
        )

    @property
    def grant_url(self) -> str:
        return f"{self.api_endpoint.rstrip('/')}{GRANT_PATH}"


def validate_file(upload_type: UploadType | str, size: int) -> None:
    constraint = UPLOAD_CONSTRAINTS[UploadType(upload_type)]
    if size > constraint.max_bytes:
        raise UploadValidationError(
            f"{size} bytes exceeds the {constraint.limit_mb}MB {UploadType(upload_type).value} limit",
            limit_bytes=constraint.max_bytes,
            size=size,
        )


async def fetch_grant(grant_url: str, *, http_client: httpx.AsyncClient | None = None) -> AuthorizationGrant:
    """GET a fresh grant from the grant endpoint."""
    try:
        if http_client is not None:
            response = await http_client.get(grant_url)
        else:
            async with httpx.AsyncClient(timeout=None) as client:
                response = await client.get(grant_url)
    except httpx.HTTPError as exc:
        raise GrantAcquisitionError(str(exc) or exc.__class__.__name__) from exc
    if not response.is_success:
        body = response.text
        raise GrantAcquisitionError(
            f"Request failed with status {response.status_code}: {body}",
            status_code=response.status_code,
            body=body,
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise GrantAcquisitionError("grant response is not valid JSON") from exc
    return AuthorizationGrant.from_payload(payload)


class UploadAttempt:
    """One run of the protocol. Owns its grant, its state and its progress stream."""

    def __init__(self, client: "UploadClient", file_name: str, data: bytes) -> None:
        self._client = client
        self.file_name = file_name
        self.data = data
        self.state = UploadState.IDLE
        self.percent = 0
        self._events: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._progress_claimed = False
        self._outcome: UploadOutcome | None = None
        self._task: asyncio.Task[UploadOutcome] | None = None

    def _begin(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_task_done)

    @property
    def outcome(self) -> UploadOutcome | None:
        return self._outcome

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def progress(self) -> AsyncIterator[ProgressEvent]:
        """Byte-count updates for this attempt; ends at the terminal state. Single use."""
        if self._progress_claimed:
            raise RuntimeError("progress stream already consumed")
        self._progress_claimed = True
        return self._iter_progress()

    async def _iter_progress(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    def cancel(self) -> bool:
        if self._task is None or self._task.done():
            return False
        return self._task.cancel()

    async def result(self) -> UploadOutcome:
        if self._task is None:
            raise RuntimeError("attempt not started")
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled():
                return self._outcome or self._finish_cancelled()
            # The awaiting caller was cancelled: take the upload down with it.
            self.cancel()
            raise

    def _set_state(self, state: UploadState) -> None:
        self.state = state
        self._client._track(self, state)

    def _emit(self, loaded: int, total: int) -> None:
        if self._outcome is not None:
            return
        event = ProgressEvent(loaded=loaded, total=total)
        self.percent = event.percent
        self._events.put_nowait(event)
        self._client._on_progress(self, event)

    async def _run(self) -> UploadOutcome:
        client = self._client
        try:
            self._set_state(UploadState.VALIDATING)
            validate_file(client.upload_type, len(self.data))

            self._set_state(UploadState.REQUESTING_GRANT)
            grant = await client._grant_provider()

            self._set_state(UploadState.UPLOADING)
            self._emit(0, len(self.data))
            result = await client.gateway.upload(
                self.data,
                file_name=self.file_name,
                folder=client.folder,
                grant=grant,
                use_unique_file_name=True,
                on_progress=self._emit,
            )
        except asyncio.CancelledError:
            self._finish_cancelled()
            raise
        except UploadError as exc:
            return self._finish_failed(exc)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected error while uploading %s", self.file_name)
            return self._finish_failed(UpstreamUploadError(f"unexpected upload error: {exc}"))
        return self._finish_succeeded(result)

    def _on_task_done(self, task: asyncio.Task) -> None:
        # Cancelled before the coroutine got to run.
        if task.cancelled() and self._outcome is None:
            self._finish_cancelled()

    def _complete(self, outcome: UploadOutcome) -> UploadOutcome:
        self._outcome = outcome
        self.state = outcome.state
        self._events.put_nowait(None)
        self._client._finish(self, outcome)
        return outcome

    def _finish_succeeded(self, result: UploadResult) -> UploadOutcome:
        upload_type = self._client.upload_type.value
        self.percent = 100
        outcome = self._complete(
            UploadOutcome(
                state=UploadState.SUCCEEDED,
                result=result,
                message=f"{result.filePath} uploaded successfully!",
            )
        )
        self._client.notifier.notify(Notification(title=f"{upload_type} uploaded successfully", description=outcome.message))
        if self._client.on_file_change is not None:
            self._client.on_file_change(result.filePath)
        return outcome

    def _finish_failed(self, exc: UploadError) -> UploadOutcome:
        upload_type = self._client.upload_type.value
        if isinstance(exc, UploadValidationError):
            title, description = exc.title, exc.description
        elif isinstance(exc, GrantAcquisitionError):
            logger.warning("Upload grant unavailable for %s: %s", self.file_name, exc)
            title, description = exc.title, exc.description
        else:
            logger.error("%s upload failed for %s (%s bytes): %s", upload_type, self.file_name, len(self.data), exc)
            title = f"{upload_type} upload failed"
            description = f"Your {upload_type} could not be uploaded. Please try again."
        self._client.notifier.notify(Notification(title=title, description=description, variant="destructive"))
        return self._complete(UploadOutcome(state=UploadState.FAILED, error=exc, message=description))

    def _finish_cancelled(self) -> UploadOutcome:
        if self._outcome is not None:
            return self._outcome
        logger.info("Upload of %s cancelled", self.file_name)
        return self._complete(UploadOutcome(state=UploadState.CANCELLED, message="Upload cancelled"))


class UploadClient:
    """Uploads files of one type into one folder, like a single upload widget."""

    def __init__(
        self,
        config: UploadClientConfig,
        *,
        upload_type: UploadType | str,
        folder: str,
        gateway: AssetService | None = None,
        notifier: Notifier | None = None,
        on_file_change: Callable[[str], None] | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        value: str | None = None,
        grant_provider: GrantProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.upload_type = UploadType(upload_type)
        self.folder = folder
        self.gateway = gateway or ImageKitService(
            public_key=config.public_key,
            url_endpoint=config.url_endpoint,
            upload_url=config.upload_url,
            http_client=http_client,
        )
        self.notifier = notifier or LoggingNotifier()
        self.on_file_change = on_file_change
        self.on_progress = on_progress
        self._grant_provider = grant_provider or partial(fetch_grant, config.grant_url, http_client=http_client)
        self.file: UploadResult | None = UploadResult(filePath=value) if value else None
        self.state = UploadState.IDLE
        self.progress = 0

    def start(self, file_name: str, data: bytes) -> UploadAttempt:
        """Kick off an attempt on the running event loop."""
        attempt = UploadAttempt(self, file_name, data)
        self.progress = 0
        attempt._begin()
        return attempt

    async def upload(self, file_name: str, data: bytes) -> UploadOutcome:
        return await self.start(file_name, data).result()

    def preview_url(self) -> str | None:
        if self.file is None:
            return None
        return resolve_asset_url(self.config.url_endpoint, self.file.filePath)

    def _track(self, attempt: UploadAttempt, state: UploadState) -> None:
        self.state = state

    def _on_progress(self, attempt: UploadAttempt, event: ProgressEvent) -> None:
        self.progress = event.percent
        if self.on_progress is not None:
            self.on_progress(event)

    def _finish(self, attempt: UploadAttempt, outcome: UploadOutcome) -> None:
        if outcome.state is UploadState.SUCCEEDED:
            self.file = outcome.result
            self.state = UploadState.SUCCEEDED
            self.progress = 100
        else:
            self.state = UploadState.IDLE
            self.progress = 0
