"""
Photo Verification - capture records and tamper detection.

Provides:
- VerifiedPhoto records assembled at capture time (hash, capture instant,
  capture method, GPS and device context)
- Integrity checks that re-hash a photo against its recorded hash
- Verification status text and badge colors for display
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from propertysnap.capabilities import ByteReader, DeviceInfo, LocalFileReader
from propertysnap.hashing import hash_photo
from propertysnap.timestamps import (
    PhotoTimestamp,
    TimestampExtractor,
    epoch_ms,
    fallback_timestamp,
    to_iso_millis,
    utc_now,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Capture Context
# =============================================================================


class CaptureMethod(str, Enum):
    """How the photo entered the app."""

    CAMERA = "camera"  # in-app camera capture
    GALLERY = "gallery"  # picked from the device library
    UNKNOWN = "unknown"


class CompositionGuide(str, Enum):
    """Framing guides offered by the verified camera."""

    ROOM_CORNER = "room-corner"
    WALL_STRAIGHT = "wall-straight"
    CEILING_FLOOR = "ceiling-floor"
    DETAIL_CLOSE = "detail-close"
    WINDOW_DOOR = "window-door"
    GENERAL = "general"

    @property
    def heading(self) -> str:
        return _GUIDE_INFO[self][0]

    @property
    def description(self) -> str:
        return _GUIDE_INFO[self][1]


_GUIDE_INFO = {
    CompositionGuide.ROOM_CORNER: ("Room Corner Shot", "Capture the corner where two walls meet"),
    CompositionGuide.WALL_STRAIGHT: ("Wall Surface", "Capture wall condition straight-on"),
    CompositionGuide.CEILING_FLOOR: ("Ceiling/Floor", "Document ceiling or floor condition"),
    CompositionGuide.DETAIL_CLOSE: ("Detail Close-up", "Document specific damage or feature"),
    CompositionGuide.WINDOW_DOOR: ("Window/Door", "Capture window or door condition"),
    CompositionGuide.GENERAL: ("General Photo", "Capture any area of the room"),
}


@dataclass(frozen=True)
class GpsFix:
    """A GPS reading taken at capture time."""

    lat: float
    lon: float
    accuracy_meters: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "accuracyMeters": self.accuracy_meters}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GpsFix":
        return cls(lat=data["lat"], lon=data["lon"], accuracy_meters=data.get("accuracyMeters"))


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class VerifiedPhoto:
    """
    Immutable provenance record created once at capture time.

    Attributes:
        uri: Photo URI at capture.
        hash: Hex SHA-256 of the raw bytes, or "" if hashing failed.
        captured_at_iso: Capture instant (or upload instant when unproven), ISO-8601 UTC.
        captured_epoch_ms: Same instant as epoch milliseconds.
        verified: True only for in-app camera captures.
        method: How the photo entered the app.
        gps: Location fix at capture, if available.
        device_tag: Platform descriptor for forensic context.
        composition_guide: Framing guide in use at capture.
        timestamp: The resolved PhotoTimestamp, when known.
    """

    uri: str
    hash: str
    captured_at_iso: str
    captured_epoch_ms: int
    verified: bool
    method: CaptureMethod
    gps: Optional[GpsFix] = None
    device_tag: Optional[str] = None
    composition_guide: Optional[str] = None
    timestamp: Optional[PhotoTimestamp] = None

    def __post_init__(self):
        if self.verified and self.method != CaptureMethod.CAMERA:
            raise ValueError("Only camera captures can be marked verified")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary (camelCase wire keys)."""
        return {
            "uri": self.uri,
            "hash": self.hash,
            "capturedAtIso": self.captured_at_iso,
            "capturedEpochMs": self.captured_epoch_ms,
            "verified": self.verified,
            "method": self.method.value,
            "gps": self.gps.to_dict() if self.gps else None,
            "deviceTag": self.device_tag,
            "compositionGuide": self.composition_guide,
            "timestamp": self.timestamp.to_dict() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifiedPhoto":
        """Create from a dictionary produced by to_dict()."""
        gps = data.get("gps")
        timestamp = data.get("timestamp")
        return cls(
            uri=data["uri"],
            hash=data.get("hash", ""),
            captured_at_iso=data["capturedAtIso"],
            captured_epoch_ms=int(data["capturedEpochMs"]),
            verified=bool(data.get("verified", False)),
            method=CaptureMethod(data.get("method", CaptureMethod.UNKNOWN.value)),
            gps=GpsFix.from_dict(gps) if gps else None,
            device_tag=data.get("deviceTag"),
            composition_guide=data.get("compositionGuide"),
            timestamp=PhotoTimestamp.from_dict(timestamp) if timestamp else None,
        )


@dataclass(frozen=True)
class IntegrityResult:
    """Result of re-hashing a photo against its recorded hash."""

    valid: bool
    original_hash: str
    current_hash: str
    tampered: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "originalHash": self.original_hash,
            "currentHash": self.current_hash,
            "tampered": self.tampered,
            "message": self.message,
        }


# =============================================================================
# Verifier Factory
# =============================================================================


class PhotoVerifier:
    """
    Builds VerifiedPhoto records.

    Hashing and timestamp extraction are independent and run concurrently;
    the record is assembled once both settle. The verifier never raises.

    Example:
        >>> verifier = PhotoVerifier(extractor=TimestampExtractor(media_library=library))
        >>> photo = await verifier.build_verified_photo("file:///cache/IMG_1.jpg", "camera")
        >>> photo.verified
        True
    """

    def __init__(
        self,
        reader: Optional[ByteReader] = None,
        extractor: Optional[TimestampExtractor] = None,
        device: Optional[DeviceInfo] = None,
    ):
        self._reader = reader or LocalFileReader()
        self._extractor = extractor or TimestampExtractor()
        self._device = device

    async def build_verified_photo(
        self,
        uri: str,
        method: Union[CaptureMethod, str] = CaptureMethod.CAMERA,
        gps: Optional[GpsFix] = None,
        exif: Optional[Any] = None,
        composition_guide: Optional[Union[CompositionGuide, str]] = None,
    ) -> VerifiedPhoto:
        """
        Create a verified photo record.

        Args:
            uri: Photo URI.
            method: camera, gallery or unknown. Unrecognised values become unknown.
            gps: Location fix at capture.
            exif: EXIF mapping supplied by the camera/picker.
            composition_guide: Framing guide in use.

        Returns:
            VerifiedPhoto. Gallery photos are recorded but never verified,
            even when their capture time is recovered.
        """
        method = _coerce_method(method)

        hash_result, ts_result = await asyncio.gather(
            hash_photo(uri, self._reader),
            self._extractor.extract(uri, exif),
            return_exceptions=True,
        )

        if isinstance(hash_result, BaseException):
            logger.error(f"Hashing failed for {uri}: {hash_result}")
            hash_result = ""
        if isinstance(ts_result, BaseException):
            logger.error(f"Timestamp extraction failed for {uri}: {ts_result}")
            ts_result = fallback_timestamp(utc_now())

        instant = ts_result.chosen_instant
        guide = composition_guide.value if isinstance(composition_guide, CompositionGuide) else composition_guide

        return VerifiedPhoto(
            uri=uri,
            hash=hash_result,
            captured_at_iso=to_iso_millis(instant),
            captured_epoch_ms=epoch_ms(instant),
            verified=method == CaptureMethod.CAMERA,
            method=method,
            gps=gps,
            device_tag=self._device_tag(),
            composition_guide=guide,
            timestamp=ts_result,
        )

    def _device_tag(self) -> Optional[str]:
        try:
            device = self._device or DeviceInfo.current()
            return device.tag or None
        except Exception as e:
            logger.debug(f"Device descriptor unavailable: {e}")
            return None


def _coerce_method(method: Union[CaptureMethod, str]) -> CaptureMethod:
    try:
        return CaptureMethod(method)
    except ValueError:
        logger.warning(f"Unknown capture method {method!r}; recording as unknown")
        return CaptureMethod.UNKNOWN


async def build_verified_photo(
    uri: str,
    method: Union[CaptureMethod, str] = CaptureMethod.CAMERA,
    gps: Optional[GpsFix] = None,
    exif: Optional[Any] = None,
    reader: Optional[ByteReader] = None,
    extractor: Optional[TimestampExtractor] = None,
) -> VerifiedPhoto:
    """Convenience wrapper around PhotoVerifier with default collaborators."""
    verifier = PhotoVerifier(reader=reader, extractor=extractor)
    return await verifier.build_verified_photo(uri, method, gps=gps, exif=exif)


# =============================================================================
# Integrity Checker
# =============================================================================


async def verify_integrity(
    uri: str,
    original_hash: str,
    reader: Optional[ByteReader] = None,
) -> IntegrityResult:
    """
    Verify a photo hasn't been tampered with by comparing hashes.

    tampered is only True when a baseline exists and differs from the
    current bytes. Unreadable photos are reported, never raised.
    """
    original_hash = original_hash or ""
    current_hash = await hash_photo(uri, reader)

    if not current_hash:
        return IntegrityResult(
            valid=False,
            original_hash=original_hash,
            current_hash="",
            tampered=False,
            message="Unable to verify photo integrity",
        )

    valid = current_hash == original_hash
    if valid:
        message = "Photo integrity verified"
    elif original_hash == "":
        message = "No original hash available"
    else:
        message = "Warning: Photo may have been modified"
        logger.warning(f"Integrity mismatch for {uri}")

    return IntegrityResult(
        valid=valid,
        original_hash=original_hash,
        current_hash=current_hash,
        tampered=not valid and original_hash != "",
        message=message,
    )


# =============================================================================
# Display Helpers
# =============================================================================


@dataclass(frozen=True)
class VerificationBadge:
    """Colors and icon for a verification badge."""

    background: str
    text: str
    icon: str


VERIFIED_BADGE = VerificationBadge(background="#E8F5E9", text="#2E7D32", icon="checkmark.shield.fill")
UNVERIFIED_BADGE = VerificationBadge(
    background="#FFF3E0", text="#E65100", icon="exclamationmark.triangle.fill"
)


def verification_status_text(photo: VerifiedPhoto) -> str:
    if photo.method == CaptureMethod.CAMERA and photo.verified:
        return "Verified - Captured in app"
    if photo.method == CaptureMethod.GALLERY:
        return "Unverified - Imported from gallery"
    return "Unverified"


def verification_badge(photo: VerifiedPhoto) -> VerificationBadge:
    if photo.method == CaptureMethod.CAMERA and photo.verified:
        return VERIFIED_BADGE
    return UNVERIFIED_BADGE
