"""
Watermark descriptors for inspection photos.

Derives the overlay text and colors a renderer (in-app image overlay or
the PDF report) draws over a photo. Image bytes are never touched here.
"""

from dataclasses import dataclass
from typing import Optional

from propertysnap.config import DISPLAY_LOCALE
from propertysnap.timestamps import format_display_datetime, parse_iso_instant
from propertysnap.verification import VerifiedPhoto


VERIFIED_COLOR = "#2D5C3F"  # forest green
UNVERIFIED_COLOR = "#D97706"  # amber
MAX_ADDRESS_LENGTH = 45


def truncate_address(address: str) -> str:
    """Truncate an address to fit the overlay, ellipsising past 45 chars."""
    if len(address) <= MAX_ADDRESS_LENGTH:
        return address
    return address[: MAX_ADDRESS_LENGTH - 3] + "..."


@dataclass(frozen=True)
class WatermarkDescriptor:
    """What to draw on a photo."""

    address_line: str
    timestamp_line: str
    verified: bool
    color: str

    @property
    def label(self) -> str:
        return "VERIFIED" if self.verified else "UNVERIFIED"

    @property
    def icon(self) -> str:
        return "✓" if self.verified else "⚠"

    def to_dict(self) -> dict:
        return {
            "addressLine": self.address_line,
            "timestampLine": self.timestamp_line,
            "verified": self.verified,
            "color": self.color,
        }


def _descriptor(address: str, timestamp_line: str, verified: bool) -> WatermarkDescriptor:
    return WatermarkDescriptor(
        address_line=truncate_address(address),
        timestamp_line=timestamp_line,
        verified=verified,
        color=VERIFIED_COLOR if verified else UNVERIFIED_COLOR,
    )


def build_watermark(photo: VerifiedPhoto, address: str) -> Optional[WatermarkDescriptor]:
    """
    Watermark for a verified photo record.

    Returns None when the photo carries no timestamp; the caller then shows
    the photo without an overlay.
    """
    if photo.timestamp is None:
        return None
    return _descriptor(address, photo.timestamp.display_text, photo.verified)


def watermark_from_timestamp(
    address: str,
    timestamp_iso: Optional[str],
    verified: bool,
    locale: str = DISPLAY_LOCALE,
) -> Optional[WatermarkDescriptor]:
    """
    Watermark from a stored ISO timestamp string.

    Unparseable timestamps are shown verbatim rather than dropped.
    """
    if not timestamp_iso:
        return None

    try:
        timestamp_line = format_display_datetime(parse_iso_instant(timestamp_iso), locale)
    except ValueError:
        timestamp_line = timestamp_iso

    return _descriptor(address, timestamp_line, verified)
