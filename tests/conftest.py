"""
Shared pytest fixtures for PropertySnap Evidence tests.
"""

import io
from datetime import datetime, timezone

import pytest
from PIL import ExifTags, Image

from propertysnap.capabilities import AssetInfo, DeviceInfo, MemoryByteReader, MemoryMediaLibrary
from propertysnap.config import StorageConfig
from propertysnap.timestamps import TimestampExtractor


FIXED_NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
FIXED_NOW_MS = 1705312800000

PHOTO_URI = "file:///var/mobile/Containers/Data/Caches/ImagePicker/IMG_0042.jpg"
PH_ASSET_ID = "9F983DBA-EC35-42B8-8773-B597CF782EDD"


def make_jpeg(color: str = "red", exif_datetime: str = None) -> bytes:
    """Encode a tiny JPEG, optionally with an IFD0 DateTime tag."""
    img = Image.new("RGB", (32, 32), color=color)
    buf = io.BytesIO()
    if exif_datetime:
        exif = Image.Exif()
        exif[ExifTags.Base.DateTime] = exif_datetime
        img.save(buf, "JPEG", exif=exif)
    else:
        img.save(buf, "JPEG")
    return buf.getvalue()


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2024-01-15T10:00:00Z."""
    return lambda: FIXED_NOW


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def photo_file(tmp_path, jpeg_bytes):
    """A JPEG written to disk."""
    path = tmp_path / "IMG_0042.jpg"
    path.write_bytes(jpeg_bytes)
    return path


@pytest.fixture
def memory_reader(jpeg_bytes) -> MemoryByteReader:
    """Reader holding one photo at PHOTO_URI."""
    return MemoryByteReader({PHOTO_URI: jpeg_bytes})


@pytest.fixture
def media_library() -> MemoryMediaLibrary:
    """Library with a few dated assets, newest first by creation time."""
    return MemoryMediaLibrary([
        AssetInfo(PH_ASSET_ID, "IMG_0042.HEIC", datetime(2024, 12, 20, 8, 15, 0, tzinfo=timezone.utc)),
        AssetInfo("B2C3", "IMG_0041.JPG", datetime(2024, 12, 19, 17, 45, 0, tzinfo=timezone.utc)),
        AssetInfo("C3D4", "IMG_0040.JPG", datetime(2024, 12, 18, 9, 0, 0, tzinfo=timezone.utc)),
    ])


@pytest.fixture
def extractor(media_library, fixed_clock) -> TimestampExtractor:
    return TimestampExtractor(media_library=media_library, clock=fixed_clock, locale="en_AU")


@pytest.fixture
def device() -> DeviceInfo:
    return DeviceInfo(platform="ios", version="17.2")


@pytest.fixture
def storage_config() -> StorageConfig:
    """Fully configured storage with short sample credentials."""
    return StorageConfig(
        account_id="A",
        access_key_id="K",
        secret_access_key="S",
        bucket_name="B",
        public_base="https://cdn.example.com",
        backend_base_url="https://api.example.com",
    )
