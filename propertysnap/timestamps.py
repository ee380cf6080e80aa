"""
Capture timestamp extraction.

Derives the most trustworthy capture time available for a photo:

1. Embedded EXIF supplied by the picker/camera (DateTimeOriginal, DateTime,
   DateTimeDigitized, in that order).
2. Platform asset library lookup by asset id (ph://, assets-library://).
3. Recent-assets heuristic: match a picker's cached file:// copy back to a
   library asset by filename. Best effort only; filenames can collide, so
   the result is tagged "asset-library-heuristic" for downstream weighting.
4. Upload-time fallback with a warning.

EXIF wall-clock values carry no timezone. They are interpreted as UTC so the
same photo yields the same instant on every host.
"""

import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from PIL import ExifTags, Image, UnidentifiedImageError

from propertysnap.capabilities import (
    AssetInfo,
    MediaLibrary,
    UriKind,
    asset_id_from_uri,
    classify_uri,
    is_file_uri,
    uri_basename,
)
from propertysnap.config import DISPLAY_LOCALE, RECENT_ASSET_SCAN_LIMIT
from propertysnap.exceptions import PermissionDenied


logger = logging.getLogger(__name__)


FALLBACK_WARNING = "Upload date - original timestamp unavailable"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Instants
# =============================================================================


def to_iso_millis(instant: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-12-26T14:30:45.000Z."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    instant = instant.astimezone(timezone.utc)
    return instant.strftime("%Y-%m-%dT%H:%M:%S") + f".{instant.microsecond // 1000:03d}Z"


def parse_iso_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant; a trailing Z or missing offset means UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def epoch_ms(instant: datetime) -> int:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return int(instant.timestamp() * 1000)


# =============================================================================
# EXIF
# =============================================================================

_EXIF_COLON = re.compile(r"^(\d{4}):(\d{2}):(\d{2})\s+(\d{2}):(\d{2}):(\d{2})$")
_EXIF_DASH = re.compile(r"^(\d{4})-(\d{2})-(\d{2})\s+(\d{2}):(\d{2}):(\d{2})$")


def parse_exif_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an EXIF date string into a UTC instant.

    Accepts "YYYY:MM:DD HH:MM:SS" (the EXIF format), the dash-separated
    variant some encoders write, and ISO strings. Returns None for anything
    else, including impossible dates.
    """
    if not value:
        return None

    text = str(value).strip().rstrip("\x00")
    match = _EXIF_COLON.match(text) or _EXIF_DASH.match(text)
    try:
        if match:
            parts = [int(p) for p in match.groups()]
            return datetime(*parts, tzinfo=timezone.utc)
        if "T" in text:
            return parse_iso_instant(text)
    except ValueError:
        return None

    return None


@dataclass(frozen=True)
class ExifFields:
    """
    The EXIF date fields the extractor understands, in priority order.

    Unknown keys in the source mapping are ignored.
    """

    date_time_original: Optional[str] = None
    date_time: Optional[str] = None
    date_time_digitized: Optional[str] = None

    _KEYS = {
        "DateTimeOriginal": "date_time_original",
        "DateTime": "date_time",
        "DateTimeDigitized": "date_time_digitized",
    }

    @classmethod
    def from_mapping(cls, exif: Mapping[str, Any]) -> "ExifFields":
        values = {}
        for key, attr in cls._KEYS.items():
            raw = exif.get(key)
            if raw is not None and str(raw).strip():
                values[attr] = str(raw)
        return cls(**values)

    def candidates(self) -> List[str]:
        """Present values in resolution order."""
        ordered = (self.date_time_original, self.date_time, self.date_time_digitized)
        return [v for v in ordered if v]

    def best(self) -> Optional[str]:
        """First present value, or None."""
        found = self.candidates()
        return found[0] if found else None

    @property
    def is_empty(self) -> bool:
        return not self.candidates()


def exif_from_image(data: bytes) -> ExifFields:
    """
    Read the EXIF date fields embedded in image bytes.

    Returns empty fields for images without EXIF or bytes Pillow cannot open.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            exif = img.getexif()
            if not exif:
                return ExifFields()
            sub_ifd = exif.get_ifd(ExifTags.IFD.Exif)
            mapping = {
                "DateTime": exif.get(ExifTags.Base.DateTime),
                "DateTimeOriginal": sub_ifd.get(ExifTags.Base.DateTimeOriginal),
                "DateTimeDigitized": sub_ifd.get(ExifTags.Base.DateTimeDigitized),
            }
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug(f"No readable EXIF in image: {e}")
        return ExifFields()

    return ExifFields.from_mapping(mapping)


# =============================================================================
# Display Formatting
# =============================================================================

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _hour12(instant: datetime) -> Tuple[int, str]:
    hour = instant.hour % 12 or 12
    return hour, "am" if instant.hour < 12 else "pm"


def _format_en_au(instant: datetime) -> str:
    hour, period = _hour12(instant)
    month = _MONTHS[instant.month - 1]
    return f"{instant.day} {month} {instant.year}, {hour}:{instant.minute:02d} {period}"


def _format_en_us(instant: datetime) -> str:
    hour, period = _hour12(instant)
    month = _MONTHS[instant.month - 1]
    return f"{month} {instant.day}, {instant.year}, {hour}:{instant.minute:02d} {period.upper()}"


def _format_en_gb(instant: datetime) -> str:
    month = _MONTHS[instant.month - 1]
    return f"{instant.day} {month} {instant.year}, {instant.hour:02d}:{instant.minute:02d}"


_LOCALE_FORMATTERS: Dict[str, Callable[[datetime], str]] = {
    "en_AU": _format_en_au,
    "en_US": _format_en_us,
    "en_GB": _format_en_gb,
}


def format_display_datetime(instant: datetime, locale: str = DISPLAY_LOCALE) -> str:
    """
    Locale-qualified medium date with short time, rendered in UTC.

    Example:
        >>> format_display_datetime(datetime(2024, 12, 26, 14, 30, tzinfo=timezone.utc))
        '26 Dec 2024, 2:30 pm'
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    instant = instant.astimezone(timezone.utc)
    formatter = _LOCALE_FORMATTERS.get(locale.replace("-", "_"), _format_en_au)
    return formatter(instant)


# =============================================================================
# PhotoTimestamp
# =============================================================================


class TimestampSource(str, Enum):
    """Where a capture instant came from, strongest first."""

    EMBEDDED_EXIF = "embedded-exif"
    ASSET_LIBRARY = "asset-library"
    ASSET_LIBRARY_HEURISTIC = "asset-library-heuristic"
    UPLOAD_FALLBACK = "upload-fallback"


@dataclass(frozen=True)
class PhotoTimestamp:
    """
    Best available capture time for a photo.

    Attributes:
        capture_instant: When the photo was taken, or None if unproven.
        upload_instant: When the app received the photo (always set).
        exif_available: True iff capture_instant was recovered.
        source: Which resolution step produced the result.
        display_text: Locale-formatted chosen instant.
        warning: Set when the capture time could not be proven.
    """

    upload_instant: datetime
    source: TimestampSource
    display_text: str
    capture_instant: Optional[datetime] = None
    exif_available: bool = False
    warning: Optional[str] = None

    @property
    def chosen_instant(self) -> datetime:
        """capture_instant when known, else upload_instant."""
        return self.capture_instant or self.upload_instant

    def to_dict(self) -> Dict[str, Any]:
        return {
            "captureInstant": to_iso_millis(self.capture_instant) if self.capture_instant else None,
            "uploadInstant": to_iso_millis(self.upload_instant),
            "exifAvailable": self.exif_available,
            "source": self.source.value,
            "displayText": self.display_text,
            "warning": self.warning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhotoTimestamp":
        capture = data.get("captureInstant")
        return cls(
            capture_instant=parse_iso_instant(capture) if capture else None,
            upload_instant=parse_iso_instant(data["uploadInstant"]),
            exif_available=bool(data.get("exifAvailable", False)),
            source=TimestampSource(data.get("source", TimestampSource.UPLOAD_FALLBACK.value)),
            display_text=data.get("displayText", ""),
            warning=data.get("warning"),
        )


def captured_timestamp(
    capture_instant: datetime,
    upload_instant: datetime,
    source: TimestampSource,
    locale: str = DISPLAY_LOCALE,
) -> PhotoTimestamp:
    return PhotoTimestamp(
        capture_instant=capture_instant,
        upload_instant=upload_instant,
        exif_available=True,
        source=source,
        display_text=format_display_datetime(capture_instant, locale),
        warning=None,
    )


def fallback_timestamp(upload_instant: datetime, locale: str = DISPLAY_LOCALE) -> PhotoTimestamp:
    return PhotoTimestamp(
        capture_instant=None,
        upload_instant=upload_instant,
        exif_available=False,
        source=TimestampSource.UPLOAD_FALLBACK,
        display_text=format_display_datetime(upload_instant, locale),
        warning=FALLBACK_WARNING,
    )


# =============================================================================
# Extractor
# =============================================================================


class TimestampExtractor:
    """
    Resolves a PhotoTimestamp for a photo URI.

    Extraction is infallible: permission denials and any other error
    downgrade to the upload-time fallback.

    Example:
        >>> extractor = TimestampExtractor(media_library=library)
        >>> ts = await extractor.extract("ph://9F983DBA-EC35/L0/001")
        >>> ts.source
        <TimestampSource.ASSET_LIBRARY: 'asset-library'>
    """

    def __init__(
        self,
        media_library: Optional[MediaLibrary] = None,
        clock: Optional[Clock] = None,
        locale: str = DISPLAY_LOCALE,
        recent_scan_limit: int = RECENT_ASSET_SCAN_LIMIT,
    ):
        """
        Args:
            media_library: Platform library; None on platforms without one (web).
            clock: Returns the current UTC instant.
            locale: Locale for display_text.
            recent_scan_limit: How many recent assets the filename heuristic scans.
        """
        self._library = media_library
        self._clock = clock or utc_now
        self._locale = locale
        self._scan_limit = recent_scan_limit

    async def extract(
        self,
        uri: str,
        exif: Optional[Any] = None,
    ) -> PhotoTimestamp:
        """
        Extract the best available capture time.

        Args:
            uri: Photo URI (file://, path, ph://, assets-library://).
            exif: EXIF mapping from the picker/camera, or ExifFields.

        Returns:
            PhotoTimestamp; never raises.
        """
        upload_instant = self._clock()
        try:
            return await self._resolve(uri, exif, upload_instant)
        except PermissionDenied as e:
            logger.info(f"{e}; using upload date for {uri}")
        except Exception as e:
            logger.error(f"Error extracting capture time for {uri}: {e}")

        return fallback_timestamp(upload_instant, self._locale)

    async def _resolve(self, uri: str, exif: Optional[Any], upload_instant: datetime) -> PhotoTimestamp:
        captured = self._from_exif(exif)
        if captured is not None:
            return captured_timestamp(captured, upload_instant, TimestampSource.EMBEDDED_EXIF, self._locale)

        if self._library is None or not uri:
            return fallback_timestamp(upload_instant, self._locale)

        if classify_uri(uri) == UriKind.ASSET_LIBRARY:
            await self._library.ensure_permission()
            captured = await self._from_asset_id(uri)
            if captured is not None:
                return captured_timestamp(captured, upload_instant, TimestampSource.ASSET_LIBRARY, self._locale)

        elif is_file_uri(uri):
            await self._library.ensure_permission()
            captured = await self._from_recent_assets(uri)
            if captured is not None:
                return captured_timestamp(
                    captured, upload_instant, TimestampSource.ASSET_LIBRARY_HEURISTIC, self._locale
                )

        return fallback_timestamp(upload_instant, self._locale)

    def _from_exif(self, exif: Optional[Any]) -> Optional[datetime]:
        if not exif:
            return None
        fields = exif if isinstance(exif, ExifFields) else ExifFields.from_mapping(exif)
        for value in fields.candidates():
            parsed = parse_exif_datetime(value)
            if parsed is not None:
                return parsed
            logger.debug(f"Ignoring unparseable EXIF date: {value!r}")
        return None

    async def _from_asset_id(self, uri: str) -> Optional[datetime]:
        asset_id = asset_id_from_uri(uri)
        if not asset_id:
            return None

        asset = await self._library.get_asset_info(asset_id)
        if asset is None or asset.creation_time is None:
            logger.debug(f"No creation time for asset {asset_id}")
            return None
        return _as_utc(asset.creation_time)

    async def _from_recent_assets(self, uri: str) -> Optional[datetime]:
        name = uri_basename(uri)
        if not name:
            return None

        recent = await self._library.list_recent(self._scan_limit)
        asset = match_asset_by_filename(name, recent)
        if asset is None or asset.creation_time is None:
            return None

        logger.debug(f"Matched {name} to asset {asset.id} by filename")
        return _as_utc(asset.creation_time)


def match_asset_by_filename(name: str, assets: List[AssetInfo]) -> Optional[AssetInfo]:
    """
    First asset whose filename matches name, with or without extension.

    Assets are expected newest first, so on a collision the most recent wins.
    """
    stem = PurePosixPath(name).stem
    for asset in assets:
        if not asset.filename:
            continue
        if asset.filename == name or PurePosixPath(asset.filename).stem == stem:
            return asset
    return None


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


# =============================================================================
# Presentation Metadata
# =============================================================================


@dataclass(frozen=True)
class TimestampDisplay:
    """Display strings for a timestamp badge."""

    date_text: str
    is_verified: bool
    warning_text: Optional[str] = None


def timestamp_display_text(timestamp: PhotoTimestamp, locale: str = DISPLAY_LOCALE) -> TimestampDisplay:
    """
    Display text for a photo timestamp.

    Shows the capture date if recovered, otherwise the upload date with the warning.
    """
    if timestamp.exif_available and timestamp.capture_instant:
        return TimestampDisplay(
            date_text=f"Captured: {format_display_datetime(timestamp.capture_instant, locale)}",
            is_verified=True,
        )

    return TimestampDisplay(
        date_text=f"Uploaded: {format_display_datetime(timestamp.upload_instant, locale)}",
        is_verified=False,
        warning_text=timestamp.warning,
    )


def format_timestamp_for_pdf(timestamp: PhotoTimestamp, locale: str = DISPLAY_LOCALE) -> Tuple[str, bool]:
    """Date text and verified flag the PDF report prints beside a photo."""
    if timestamp.exif_available and timestamp.capture_instant:
        return format_display_datetime(timestamp.capture_instant, locale), True
    return format_display_datetime(timestamp.upload_instant, locale), False
