# propertysnap/config.py
"""
Centralized configuration for PropertySnap photo evidence.

All configurable values are read from environment variables with sensible defaults.
Credentials are configuration, not state: they are read once and never mutated.

Usage:
    from propertysnap.config import StorageConfig, PROXIMITY_THRESHOLD_METERS

    config = StorageConfig.from_env()
    if config.is_configured:
        ...

Environment Variables:
    R2_ACCOUNT_ID: Cloudflare account id (object store host prefix)
    R2_ACCESS_KEY_ID: S3-compatible access key id
    R2_SECRET_ACCESS_KEY: S3-compatible secret key
    R2_BUCKET_NAME: Bucket for photos (default: propertysnap)
    R2_PUBLIC_BASE: Public URL prefix for uploaded objects
    R2_HOST: Object store host suffix (default: r2.cloudflarestorage.com)
    PROPERTYSNAP_API_URL: Backend base URL for proxied uploads
"""

import os
from dataclasses import dataclass, field
from typing import Final, Optional

# =============================================================================
# Object Storage
# =============================================================================

R2_HOST: Final[str] = os.getenv("R2_HOST", "r2.cloudflarestorage.com")

DEFAULT_BUCKET_NAME: Final[str] = "propertysnap"

# Presigned URLs are valid for five minutes unless overridden
PRESIGNED_URL_TTL_SECONDS: Final[int] = int(os.getenv("PROPERTYSNAP_PRESIGN_TTL", "300"))

# =============================================================================
# Backend API
# =============================================================================

BACKEND_BASE_URL: Final[str] = os.getenv(
    "PROPERTYSNAP_API_URL",
    "https://propertysnap.onrender.com"
)

# tRPC procedure that accepts base64 photo uploads
BACKEND_UPLOAD_PATH: Final[str] = "/api/trpc/storage.uploadPhoto"

HTTP_TIMEOUT_SECONDS: Final[float] = float(os.getenv("PROPERTYSNAP_HTTP_TIMEOUT", "30"))

# =============================================================================
# Capture Verification
# =============================================================================

PROXIMITY_THRESHOLD_METERS: Final[float] = float(
    os.getenv("PROPERTYSNAP_PROXIMITY_THRESHOLD_M", "100")
)

RECENT_ASSET_SCAN_LIMIT: Final[int] = int(os.getenv("PROPERTYSNAP_RECENT_ASSET_LIMIT", "100"))

DISPLAY_LOCALE: Final[str] = os.getenv("PROPERTYSNAP_LOCALE", "en_AU")


@dataclass(frozen=True)
class StorageConfig:
    """
    Credentials and endpoints for the S3-compatible photo store.

    Attributes:
        account_id: Account id, used as the endpoint host prefix.
        access_key_id: Access key id placed in the SigV4 credential scope.
        secret_access_key: Secret used to derive the signing key.
        bucket_name: Target bucket.
        public_base: Public URL prefix objects are served from.
        backend_base_url: Backend used when direct uploads fail.
        host: Host suffix of the object store endpoint.
    """

    account_id: str = ""
    access_key_id: str = field(default="", repr=False)
    secret_access_key: str = field(default="", repr=False)
    bucket_name: str = DEFAULT_BUCKET_NAME
    public_base: str = ""
    backend_base_url: str = BACKEND_BASE_URL
    host: str = R2_HOST
    presigned_url_ttl_seconds: int = PRESIGNED_URL_TTL_SECONDS

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Build a config from the R2_* and PROPERTYSNAP_* environment variables."""
        account_id = os.getenv("R2_ACCOUNT_ID", "")
        return cls(
            account_id=account_id,
            access_key_id=os.getenv("R2_ACCESS_KEY_ID", ""),
            secret_access_key=os.getenv("R2_SECRET_ACCESS_KEY", ""),
            bucket_name=os.getenv("R2_BUCKET_NAME", DEFAULT_BUCKET_NAME),
            public_base=os.getenv("R2_PUBLIC_BASE", ""),
            backend_base_url=BACKEND_BASE_URL,
            host=R2_HOST,
            presigned_url_ttl_seconds=PRESIGNED_URL_TTL_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        """True when direct signed uploads are possible."""
        return bool(self.account_id and self.access_key_id and self.secret_access_key)

    @property
    def endpoint_host(self) -> str:
        return f"{self.account_id}.{self.host}"

    @property
    def resolved_public_base(self) -> str:
        """Public URL prefix, defaulting to the account's r2.dev domain."""
        base = self.public_base or f"https://pub-{self.account_id}.r2.dev"
        return base.rstrip("/")


def _mask(secret: Optional[str]) -> str:
    if not secret:
        return "(unset)"
    return f"{secret[:4]}…" if len(secret) > 4 else "****"


# =============================================================================
# Configuration Summary (for debugging)
# =============================================================================

def print_config(config: Optional[StorageConfig] = None) -> None:
    """Print current configuration with secrets masked."""
    config = config or StorageConfig.from_env()
    print("PropertySnap Evidence Configuration:")
    print(f"  R2_ACCOUNT_ID:        {config.account_id or '(unset)'}")
    print(f"  R2_ACCESS_KEY_ID:     {_mask(config.access_key_id)}")
    print(f"  R2_SECRET_ACCESS_KEY: {_mask(config.secret_access_key)}")
    print(f"  R2_BUCKET_NAME:       {config.bucket_name}")
    print(f"  PUBLIC_BASE:          {config.resolved_public_base}")
    print(f"  BACKEND_BASE_URL:     {config.backend_base_url}")
    print(f"  PROXIMITY_THRESHOLD:  {PROXIMITY_THRESHOLD_METERS:g}m")
    print(f"  RECENT_ASSET_LIMIT:   {RECENT_ASSET_SCAN_LIMIT}")
    print(f"  PRESIGN_TTL:          {config.presigned_url_ttl_seconds}s")
    print(f"  LOCALE:               {DISPLAY_LOCALE}")


if __name__ == "__main__":
    print_config()
