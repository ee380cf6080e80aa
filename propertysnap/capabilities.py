"""
Platform capabilities consumed by the evidence pipeline.

The host application supplies byte access and (on iOS/Android) a media
library. Both are small async interfaces so the core can run against the
real device APIs or against in-memory fakes.
"""

import asyncio
import base64
import logging
import os
import platform as _platform
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlparse

from propertysnap.exceptions import PermissionDenied, ReadError


logger = logging.getLogger(__name__)


# =============================================================================
# URI Classification
# =============================================================================


class UriKind(str, Enum):
    """Where the bytes behind a photo URI live."""

    LOCAL = "local"
    ASSET_LIBRARY = "asset-library"
    REMOTE = "remote"


_ASSET_SCHEMES = ("ph://", "assets-library://")


def is_remote_uri(uri: str) -> bool:
    """Check if a URI is already an absolute HTTP(S) location."""
    return uri.startswith("http://") or uri.startswith("https://")


def classify_uri(uri: str) -> UriKind:
    if is_remote_uri(uri):
        return UriKind.REMOTE
    if uri.startswith(_ASSET_SCHEMES):
        return UriKind.ASSET_LIBRARY
    return UriKind.LOCAL


def is_file_uri(uri: str) -> bool:
    """True for file:// URIs and absolute paths (a picker's cached copy)."""
    return uri.startswith("file://") or uri.startswith("/")


def asset_id_from_uri(uri: str) -> Optional[str]:
    """
    Extract the asset id from an asset-library URI.

    Supports:
        ph://<uuid>/L0/001
        assets-library://asset/asset.JPG?id=<uuid>&ext=JPG
    """
    if uri.startswith("ph://"):
        asset_id = uri[len("ph://"):].split("/")[0]
        return asset_id or None

    if uri.startswith("assets-library://"):
        query = parse_qs(urlparse(uri).query)
        ids = query.get("id")
        return ids[0] if ids and ids[0] else None

    return None


def uri_basename(uri: str) -> str:
    """Filename portion of a file:// URI or path, without query string."""
    path = urlparse(uri).path if uri.startswith("file://") else uri
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


def local_path(uri: str) -> Path:
    """Convert a file:// URI or plain path into a filesystem Path."""
    if uri.startswith("file://"):
        return Path(unquote(urlparse(uri).path))
    return Path(uri)


# =============================================================================
# Byte Readers
# =============================================================================


class ByteReader(ABC):
    """Abstract interface for reading the bytes behind a photo URI."""

    @abstractmethod
    async def read(self, uri: str) -> bytes:
        """Read all bytes. Raises ReadError on failure."""
        pass

    async def read_base64(self, uri: str) -> str:
        """Read bytes and return them base64 encoded (for JSON transports)."""
        data = await self.read(uri)
        return base64.b64encode(data).decode("ascii")


class LocalFileReader(ByteReader):
    """
    Reads file:// URIs and filesystem paths.

    The blocking read runs in a worker thread so the event loop is never
    stalled by large photos.
    """

    async def read(self, uri: str) -> bytes:
        if classify_uri(uri) != UriKind.LOCAL:
            raise ReadError(uri, "not a local file")

        path = local_path(uri)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ReadError(uri, e.strerror or str(e))


class MemoryByteReader(ByteReader):
    """
    In-memory reader for hosts that already hold photo bytes, and for tests.

    Example:
        >>> reader = MemoryByteReader({"file:///photo.jpg": b"..."})
        >>> data = await reader.read("file:///photo.jpg")
    """

    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self._files: Dict[str, bytes] = dict(files or {})

    def put(self, uri: str, data: bytes) -> None:
        self._files[uri] = data

    def remove(self, uri: str) -> None:
        self._files.pop(uri, None)

    async def read(self, uri: str) -> bytes:
        try:
            return self._files[uri]
        except KeyError:
            raise ReadError(uri, "no such file")


# =============================================================================
# Media Library
# =============================================================================


@dataclass(frozen=True)
class AssetInfo:
    """
    A photo asset as reported by the platform media library.

    Attributes:
        id: Platform-specific asset identifier.
        filename: Original filename (e.g. "IMG_0042.HEIC").
        creation_time: When the asset was created (UTC).
    """

    id: str
    filename: str
    creation_time: Optional[datetime] = None


class MediaLibrary(ABC):
    """Abstract interface for the platform photo library."""

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask for read access. Returns True if granted."""
        pass

    @abstractmethod
    async def get_asset_info(self, asset_id: str) -> Optional[AssetInfo]:
        """Look up a single asset. Returns None if unknown."""
        pass

    @abstractmethod
    async def list_recent(self, limit: int) -> List[AssetInfo]:
        """Most recent photo assets, ordered by creation time descending."""
        pass

    async def ensure_permission(self) -> None:
        """Raise PermissionDenied unless access is granted."""
        if not await self.request_permission():
            raise PermissionDenied()


class MemoryMediaLibrary(MediaLibrary):
    """
    In-memory media library for testing and headless hosts.

    Example:
        >>> library = MemoryMediaLibrary([AssetInfo("A1", "IMG_1.JPG", created)])
        >>> await library.list_recent(10)
    """

    def __init__(self, assets: Optional[List[AssetInfo]] = None, granted: bool = True):
        self._assets: Dict[str, AssetInfo] = {a.id: a for a in (assets or [])}
        self._granted = granted
        self.permission_requests = 0

    def add(self, asset: AssetInfo) -> None:
        self._assets[asset.id] = asset

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self._granted

    async def get_asset_info(self, asset_id: str) -> Optional[AssetInfo]:
        return self._assets.get(asset_id)

    async def list_recent(self, limit: int) -> List[AssetInfo]:
        dated = [a for a in self._assets.values() if a.creation_time is not None]
        dated.sort(key=lambda a: a.creation_time, reverse=True)
        return dated[:limit]


# =============================================================================
# Device Descriptor
# =============================================================================


@dataclass(frozen=True)
class DeviceInfo:
    """Opaque platform descriptor recorded for forensic context."""

    platform: str
    version: str = ""
    model: Optional[str] = None

    @property
    def tag(self) -> str:
        """Free-form descriptor, e.g. "ios 17.2" or "android 34 (Pixel 8)"."""
        tag = f"{self.platform} {self.version}".strip()
        if self.model:
            tag = f"{tag} ({self.model})"
        return tag

    @classmethod
    def current(cls) -> "DeviceInfo":
        """Describe the host running this process."""
        system = _platform.system().lower() or os.name
        release = re.sub(r"\s+", " ", _platform.release()).strip()
        return cls(platform=system, version=release, model=_platform.machine() or None)
