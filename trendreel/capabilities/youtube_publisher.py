"""
YouTube publishers.

``YouTubePublisher`` performs a resumable upload through the YouTube Data API
using the channel's stored OAuth tokens. Scheduling follows the platform's
rule: a scheduled video is uploaded as private with ``publishAt`` set.

``SimulatedPublisher`` returns a fabricated receipt without network access,
for development and for channels that haven't connected YouTube yet.
"""

import asyncio
import base64
import io
import secrets
import string
from typing import Any, Optional

import httpx
import structlog
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from trendreel.capabilities.base import PublishReceipt, Publisher
from trendreel.core.exceptions import (
    CapabilityAuthError,
    CapabilityRateLimitError,
    CapabilityUnavailableError,
    ExternalCapabilityError,
    MalformedCapabilityOutputError,
)
from trendreel.models.schemas import PrivacyStatus, PublishMetadata, ScheduleConfig

logger = structlog.get_logger(__name__)

YOUTUBE_UPLOAD_SCOPE = "https://www.googleapis.com/auth/youtube.upload"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
VIDEO_ID_ALPHABET = string.ascii_letters + string.digits + "-_"


def shorts_url(video_id: str) -> str:
    return f"https://youtube.com/shorts/{video_id}"


def decode_data_url(locator: str) -> tuple[bytes, str]:
    """Split a ``data:<mime>;base64,<payload>`` locator into bytes and mime type."""
    header, _, payload = locator.partition(",")
    if not header.startswith("data:") or ";base64" not in header or not payload:
        raise MalformedCapabilityOutputError("youtube_publisher", "Unsupported data URL locator")
    mime_type = header[len("data:"):].split(";", 1)[0] or "video/mp4"
    return base64.b64decode(payload), mime_type


async def _download(client: httpx.AsyncClient, url: str) -> tuple[bytes, str]:
    response = await client.get(url, follow_redirects=True)
    response.raise_for_status()
    return response.content, response.headers.get("content-type", "video/mp4")


def build_video_body(
    metadata: PublishMetadata,
    schedule: ScheduleConfig,
    category_id: str,
) -> dict[str, Any]:
    """Request body for ``videos.insert``."""
    status_body: dict[str, Any] = {
        "privacyStatus": schedule.privacy_status.value,
        "selfDeclaredMadeForKids": False,
    }
    if schedule.publish_at is not None:
        # Platform rule: scheduled videos must be private until publishAt
        status_body["privacyStatus"] = PrivacyStatus.PRIVATE.value
        status_body["publishAt"] = schedule.publish_at.isoformat()

    return {
        "snippet": {
            "title": metadata.title,
            "description": metadata.description,
            "tags": list(metadata.tags),
            "categoryId": category_id,
        },
        "status": status_body,
    }


class YouTubePublisher(Publisher):
    """Publisher uploading to YouTube with per-channel OAuth credentials."""

    name = "youtube_publisher"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        category_id: str = "22",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.category_id = category_id
        self._http_client = http_client

    def _credentials(self, credentials: Optional[dict[str, Any]]) -> Credentials:
        if not credentials or not (credentials.get("access_token") or credentials.get("refresh_token")):
            raise CapabilityAuthError(self.name, "Channel has no YouTube OAuth credentials")
        return Credentials(
            token=credentials.get("access_token"),
            refresh_token=credentials.get("refresh_token"),
            token_uri=GOOGLE_TOKEN_URI,
            client_id=credentials.get("client_id", self.client_id),
            client_secret=credentials.get("client_secret", self.client_secret),
            scopes=[YOUTUBE_UPLOAD_SCOPE],
        )

    async def _load_video(self, video_locator: str) -> tuple[bytes, str]:
        if video_locator.startswith("data:"):
            return decode_data_url(video_locator)

        if self._http_client is not None:
            return await _download(self._http_client, video_locator)
        async with httpx.AsyncClient(timeout=120.0) as client:
            return await _download(client, video_locator)

    def _upload(self, creds: Credentials, body: dict[str, Any], data: bytes, mime_type: str) -> dict[str, Any]:
        youtube = build("youtube", "v3", credentials=creds, cache_discovery=False)
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, chunksize=-1, resumable=True)
        request = youtube.videos().insert(part="snippet,status", body=body, media_body=media)
        response = None
        while response is None:
            _, response = request.next_chunk()
        return response

    async def publish(
        self,
        video_locator: str,
        metadata: PublishMetadata,
        schedule: ScheduleConfig,
        credentials: Optional[dict[str, Any]] = None,
    ) -> PublishReceipt:
        creds = self._credentials(credentials)
        data, mime_type = await self._load_video(video_locator)
        body = build_video_body(metadata, schedule, self.category_id)

        try:
            response = await asyncio.to_thread(self._upload, creds, body, data, mime_type)
        except HttpError as e:
            status = e.resp.status if e.resp is not None else None
            if status in (401, 403):
                raise CapabilityAuthError(self.name, str(e), {"status": status})
            if status == 429:
                raise CapabilityRateLimitError(self.name, str(e), {"status": status})
            if status is not None and status >= 500:
                raise CapabilityUnavailableError(self.name, str(e), {"status": status})
            raise ExternalCapabilityError(self.name, str(e), {"status": status})

        video_id = response.get("id")
        if not video_id:
            raise MalformedCapabilityOutputError(self.name, "Upload response carried no video id")

        logger.info(
            "youtube_upload_complete",
            video_id=video_id,
            size_bytes=len(data),
            scheduled=bool(body["status"].get("publishAt")),
        )
        return PublishReceipt(remote_id=video_id, remote_url=shorts_url(video_id))


class SimulatedPublisher(Publisher):
    """Publisher that fabricates a YouTube-shaped receipt."""

    name = "simulated_publisher"

    def __init__(self, latency_seconds: float = 0.0):
        self.latency_seconds = latency_seconds

    async def publish(
        self,
        video_locator: str,
        metadata: PublishMetadata,
        schedule: ScheduleConfig,
        credentials: Optional[dict[str, Any]] = None,
    ) -> PublishReceipt:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        video_id = "".join(secrets.choice(VIDEO_ID_ALPHABET) for _ in range(11))
        logger.info("simulated_upload_complete", video_id=video_id, title=metadata.title)
        return PublishReceipt(remote_id=video_id, remote_url=shorts_url(video_id))
