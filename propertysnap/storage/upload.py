"""
Photo Upload Pipeline - object storage with graceful local fallback.

Policy for a single photo, in order:

1. Already-remote URIs are returned as-is, without any I/O.
2. Read the bytes and pick a filename.
3. Direct SigV4-signed PUT to the object store.
4. Backend-proxied upload (base64 JSON POST to the tRPC endpoint).
5. Keep the local URI and report why the remote writes failed.

The pipeline never raises and never deletes the local file.
"""

import base64
import logging
import random
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

import httpx

from propertysnap.capabilities import ByteReader, LocalFileReader, is_remote_uri
from propertysnap.config import BACKEND_UPLOAD_PATH, HTTP_TIMEOUT_SECONDS, StorageConfig
from propertysnap.exceptions import ReadError, RemoteFailure, SignerMisconfigured
from propertysnap.storage.signer import StorageSigner
from propertysnap.timestamps import epoch_ms, utc_now


logger = logging.getLogger(__name__)


ProgressCallback = Callable[[int, int, str], None]

_BASE36 = string.digits + string.ascii_lowercase


def is_cloud_url(uri: str) -> bool:
    """Check if a URI is a cloud URL rather than a local file."""
    return is_remote_uri(uri)


def generate_filename(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """Unique photo filename: photo_{epoch_ms}_{9 base36 chars}.jpg."""
    rng = rng or random.SystemRandom()
    suffix = "".join(rng.choice(_BASE36) for _ in range(9))
    return f"photo_{epoch_ms(now or utc_now())}_{suffix}.jpg"


@dataclass(frozen=True)
class StoredPhoto:
    """
    Outcome of one upload attempt.

    Attributes:
        uri: Public HTTP(S) URL when remote, otherwise the original local URI.
        is_remote: True if the photo now lives in object storage.
        object_key: Key inside the bucket, when known.
        error: Why the photo stayed local.
    """

    uri: str
    is_remote: bool
    object_key: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.is_remote and not is_remote_uri(self.uri):
            raise ValueError(f"Remote photo must have an HTTP(S) URL, got {self.uri!r}")

    def to_dict(self) -> dict:
        return {
            "uri": self.uri,
            "isRemote": self.is_remote,
            "objectKey": self.object_key,
            "error": self.error,
        }


class UploadPipeline:
    """
    Uploads photos to object storage, falling back to the backend proxy and
    finally to the local URI.

    Example:
        >>> async with UploadPipeline(StorageConfig.from_env()) as pipeline:
        ...     stored = await pipeline.upload("file:///cache/IMG_0042.jpg")
        ...     print(stored.uri, stored.is_remote)
    """

    def __init__(
        self,
        config: StorageConfig,
        reader: Optional[ByteReader] = None,
        signer: Optional[StorageSigner] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        auth_token: Optional[str] = None,
        http_timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        """
        Args:
            config: Storage credentials and backend URL.
            reader: Byte reader for local photos.
            signer: SigV4 signer (default: built from config).
            http_client: Shared client; if omitted one is created per context.
            auth_token: Bearer token for the backend proxy.
            http_timeout: Timeout for clients this pipeline creates.
        """
        self._config = config
        self._reader = reader or LocalFileReader()
        self._signer = signer or StorageSigner(config)
        self._http_client = http_client
        self._owns_client = False
        self._auth_token = auth_token
        self._http_timeout = http_timeout

    async def __aenter__(self):
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._http_timeout)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            self._owns_client = False

    async def upload(
        self,
        uri: str,
        filename: Optional[str] = None,
        content_type: str = "image/jpeg",
    ) -> StoredPhoto:
        """
        Upload a photo, returning a cloud URL or the local URI on failure.

        Never raises.
        """
        if is_remote_uri(uri):
            return StoredPhoto(uri=uri, is_remote=True)

        try:
            return await self._upload_local(uri, filename, content_type)
        except Exception as e:
            logger.error(f"Unexpected error uploading {uri}: {e}")
            return StoredPhoto(uri=uri, is_remote=False, error=str(e) or type(e).__name__)

    async def upload_batch(
        self,
        uris: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[StoredPhoto]:
        """
        Upload photos one at a time, preserving input order.

        on_progress receives (completed, total, current_uri) before each item
        and (total, total, "") once at the end.
        """
        total = len(uris)
        results: List[StoredPhoto] = []

        for index, uri in enumerate(uris):
            self._report(on_progress, index, total, uri)
            results.append(await self.upload(uri))

        self._report(on_progress, total, total, "")
        return results

    def _report(self, on_progress: Optional[ProgressCallback], completed: int, total: int, uri: str) -> None:
        if on_progress is None:
            return
        try:
            on_progress(completed, total, uri)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    async def _upload_local(self, uri: str, filename: Optional[str], content_type: str) -> StoredPhoto:
        try:
            body = await self._reader.read(uri)
        except ReadError as e:
            logger.warning(f"Photo saved locally (could not read for upload): {e}")
            return StoredPhoto(uri=uri, is_remote=False, error=str(e))

        filename = filename or generate_filename()
        errors: List[str] = []

        try:
            key = self._signer.object_key(filename)
            url = await self._put_signed(key, body, content_type)
            logger.info(f"Photo uploaded to cloud: {url}")
            return StoredPhoto(uri=url, is_remote=True, object_key=key)
        except (SignerMisconfigured, RemoteFailure) as e:
            logger.debug(f"Direct upload failed for {uri}: {e}")
            errors.append(f"Direct upload failed: {e}")

        try:
            key, url = await self._post_backend(body, filename, content_type)
            logger.info(f"Photo uploaded via backend: {url}")
            return StoredPhoto(uri=url, is_remote=True, object_key=key)
        except RemoteFailure as e:
            logger.debug(f"Backend upload failed for {uri}: {e}")
            errors.append(f"Backend upload failed: {e}")

        error = "; ".join(errors)
        logger.warning(f"Cloud upload failed, keeping local URI {uri}: {error}")
        return StoredPhoto(uri=uri, is_remote=False, error=error)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send through the pooled client, or a short-lived one outside a context."""
        client = self._http_client or httpx.AsyncClient(timeout=self._http_timeout)
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteFailure(f"{type(e).__name__}: {e}")
        finally:
            if client is not self._http_client:
                await client.aclose()

    async def _put_signed(self, key: str, body: bytes, content_type: str) -> str:
        signed = self._signer.sign_put(key, body, content_type)
        response = await self._send(signed.method, signed.url, headers=signed.headers, content=body)

        if not response.is_success:
            raise RemoteFailure(f"R2 upload failed: {response.status_code}", response.status_code)

        url = self._signer.public_url(key)
        if not is_remote_uri(url):
            raise RemoteFailure(f"Public base is not an HTTP(S) URL: {url}")
        return url

    async def _post_backend(self, body: bytes, filename: str, content_type: str) -> Tuple[Optional[str], str]:
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        payload = {
            "json": {
                "base64Data": base64.b64encode(body).decode("ascii"),
                "fileName": filename,
                "contentType": content_type,
            }
        }
        url = f"{self._config.backend_base_url.rstrip('/')}{BACKEND_UPLOAD_PATH}"
        response = await self._send("POST", url, headers=headers, json=payload)

        try:
            envelope = response.json()
        except ValueError:
            envelope = None

        if not response.is_success:
            message = _error_message(envelope) or f"Upload failed: {response.status_code}"
            raise RemoteFailure(message, response.status_code)

        return _unwrap_upload(envelope)


def _error_message(envelope: Any) -> Optional[str]:
    """Message from a tRPC error envelope {error: {json: {message}}}."""
    if not isinstance(envelope, dict):
        return None
    error = envelope.get("error")
    if not isinstance(error, dict):
        return None
    inner = error.get("json")
    if isinstance(inner, dict) and inner.get("message"):
        return str(inner["message"])
    return "Upload failed"


def _dig(value: Any, *path: str) -> Any:
    for name in path:
        if not isinstance(value, dict):
            return None
        value = value.get(name)
    return value


def _unwrap_upload(envelope: Any) -> Tuple[Optional[str], str]:
    """(key, url) from a tRPC success envelope {result: {data: {json: {key, url}}}}."""
    if isinstance(envelope, dict):
        data = _dig(envelope, "result", "data", "json")
        if isinstance(data, dict) and data.get("url"):
            url = str(data["url"])
            if not is_remote_uri(url):
                raise RemoteFailure(f"Backend returned a non-HTTP URL: {url}")
            return (str(data["key"]) if data.get("key") else None), url

        message = _error_message(envelope)
        if message:
            raise RemoteFailure(message)

    raise RemoteFailure("Unexpected response format")
