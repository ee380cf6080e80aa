"""
PropertySnap Evidence - Photo evidence and capture integrity for property inspections.

This package fingerprints inspection photos, recovers their original capture
time, measures distance to the inspected property, uploads them to object
storage with local fallback, and derives watermark metadata for reports.
"""

__version__ = "1.0.0"

# Core records and operations
from .hashing import hash_bytes, hash_photo, is_valid_hash
from .geo import (
    ProximityResult,
    calculate_distance,
    check_proximity,
    format_distance,
    is_within_threshold,
)
from .timestamps import (
    ExifFields,
    PhotoTimestamp,
    TimestampExtractor,
    TimestampSource,
    parse_exif_datetime,
)
from .verification import (
    CaptureMethod,
    GpsFix,
    IntegrityResult,
    PhotoVerifier,
    VerifiedPhoto,
    build_verified_photo,
    verify_integrity,
)
from .watermark import WatermarkDescriptor, build_watermark
from .config import StorageConfig
from .exceptions import (
    EvidenceError,
    PermissionDenied,
    ReadError,
    RemoteFailure,
    SignerMisconfigured,
)


# Storage and sealing pull in httpx/jwcrypto; load them on first use
def __getattr__(name):
    """Lazy loading of storage and sealing features."""
    if name in ("StorageSigner", "SignedRequest", "UploadPipeline", "StoredPhoto"):
        from . import storage

        return getattr(storage, name)
    elif name in ("RecordSealer", "SealCheck", "verify_seal", "generate_sealing_key"):
        from . import seal

        return getattr(seal, name)
    raise AttributeError(f"module 'propertysnap' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Hashing
    "hash_bytes",
    "hash_photo",
    "is_valid_hash",
    # Geo
    "ProximityResult",
    "calculate_distance",
    "check_proximity",
    "format_distance",
    "is_within_threshold",
    # Timestamps
    "ExifFields",
    "PhotoTimestamp",
    "TimestampExtractor",
    "TimestampSource",
    "parse_exif_datetime",
    # Verification
    "CaptureMethod",
    "GpsFix",
    "IntegrityResult",
    "PhotoVerifier",
    "VerifiedPhoto",
    "build_verified_photo",
    "verify_integrity",
    # Watermark
    "WatermarkDescriptor",
    "build_watermark",
    # Config and errors
    "StorageConfig",
    "EvidenceError",
    "PermissionDenied",
    "ReadError",
    "RemoteFailure",
    "SignerMisconfigured",
    # Storage (lazy loaded)
    "StorageSigner",
    "SignedRequest",
    "UploadPipeline",
    "StoredPhoto",
    # Sealing (lazy loaded)
    "RecordSealer",
    "SealCheck",
    "verify_seal",
    "generate_sealing_key",
]
