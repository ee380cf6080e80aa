"""
AWS Signature Version 4 for S3-compatible object stores (Cloudflare R2).

Signs PUT requests to https://{accountId}.{host}/{bucket}/{key}. The region
is the literal "auto" and the service "s3". Two paths are exposed:

- sign_put(): headers for a direct PUT carrying the body hash.
- presign_put(): a query-string signed URL bound to an expiry, which lets a
  client PUT without holding credentials.

Signing is deterministic: the same request at the same instant always
produces the same Authorization header.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple, Union
from urllib.parse import quote

from propertysnap.config import StorageConfig
from propertysnap.exceptions import SignerMisconfigured
from propertysnap.timestamps import epoch_ms, utc_now


logger = logging.getLogger(__name__)


ALGORITHM = "AWS4-HMAC-SHA256"
REGION = "auto"
SERVICE = "s3"
TERMINATOR = "aws4_request"
SIGNED_HEADERS = "content-type;host;x-amz-content-sha256;x-amz-date"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
PHOTO_PREFIX = "photos"

MAX_PRESIGN_SECONDS = 7 * 24 * 3600


# =============================================================================
# Primitives
# =============================================================================


def sha256_hex(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def amz_date(instant: datetime) -> str:
    """Basic ISO-8601 without separators or fractions, e.g. 20240115T100000Z."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def credential_scope(date_stamp: str, region: str = REGION, service: str = SERVICE) -> str:
    return f"{date_stamp}/{region}/{service}/{TERMINATOR}"


def signing_key(secret: str, date_stamp: str, region: str = REGION, service: str = SERVICE) -> bytes:
    """Derive kSigning through the chained HMAC date -> region -> service -> aws4_request."""
    k_date = hmac_sha256(f"AWS4{secret}".encode("utf-8"), date_stamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, TERMINATOR)


def canonical_request(
    method: str,
    canonical_uri: str,
    canonical_query: str,
    canonical_headers: str,
    signed_headers: str,
    payload_hash: str,
) -> str:
    """canonical_headers must already end with a newline."""
    return "\n".join([method, canonical_uri, canonical_query, canonical_headers, signed_headers, payload_hash])


def string_to_sign(request_date: str, scope: str, canonical: str) -> str:
    return "\n".join([ALGORITHM, request_date, scope, sha256_hex(canonical)])


def _signature(secret: str, date_stamp: str, to_sign: str) -> str:
    """Hex HMAC of the string to sign under the derived signing key."""
    return hmac_sha256(signing_key(secret, date_stamp), to_sign).hex()


def uri_encode(value: str, encode_slash: bool = True) -> str:
    """RFC 3986 encoding as SigV4 requires (unreserved characters kept)."""
    safe = "-_.~" if encode_slash else "-_.~/"
    return quote(value, safe=safe)


# =============================================================================
# Signer
# =============================================================================


@dataclass(frozen=True)
class SignedRequest:
    """A fully signed request, ready to send."""

    method: str
    url: str
    headers: Dict[str, str]
    amz_date: str
    signature: str

    @property
    def authorization(self) -> str:
        return self.headers["Authorization"]


class StorageSigner:
    """
    SigV4 signer for photo uploads.

    Example:
        >>> signer = StorageSigner(StorageConfig.from_env())
        >>> request = signer.sign_put("photos/x.jpg", body)
        >>> request.headers["Authorization"]
        'AWS4-HMAC-SHA256 Credential=.../20240115/auto/s3/aws4_request, ...'
    """

    def __init__(self, config: StorageConfig, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            config: Storage credentials and endpoints.
            clock: Returns the current UTC instant (injectable for tests).
        """
        self._config = config
        self._clock = clock or utc_now

    @property
    def config(self) -> StorageConfig:
        return self._config

    def _require_credentials(self) -> None:
        missing = [
            name
            for name, value in (
                ("accountId", self._config.account_id),
                ("accessKeyId", self._config.access_key_id),
                ("secretAccessKey", self._config.secret_access_key),
                ("bucketName", self._config.bucket_name),
            )
            if not value
        ]
        if missing:
            raise SignerMisconfigured(f"R2 credentials not configured (missing {', '.join(missing)})")

    def _target(self, key: str) -> Tuple[str, str]:
        """(canonical URI, absolute URL) for an object key."""
        canonical_uri = f"/{uri_encode(self._config.bucket_name)}/{uri_encode(key, encode_slash=False)}"
        return canonical_uri, f"https://{self._config.endpoint_host}{canonical_uri}"

    def sign_put(
        self,
        key: str,
        body: bytes,
        content_type: str = "image/jpeg",
        now: Optional[datetime] = None,
    ) -> SignedRequest:
        """
        Sign a direct PUT of body to key.

        Raises:
            SignerMisconfigured: If credentials are missing.
        """
        self._require_credentials()

        request_date = amz_date(now or self._clock())
        date_stamp = request_date[:8]
        host = self._config.endpoint_host
        payload_hash = sha256_hex(body)
        canonical_uri, url = self._target(key)

        canonical_headers = (
            f"content-type:{content_type}\n"
            f"host:{host}\n"
            f"x-amz-content-sha256:{payload_hash}\n"
            f"x-amz-date:{request_date}\n"
        )
        canonical = canonical_request("PUT", canonical_uri, "", canonical_headers, SIGNED_HEADERS, payload_hash)

        scope = credential_scope(date_stamp)
        signature = _signature(
            self._config.secret_access_key, date_stamp, string_to_sign(request_date, scope, canonical)
        )

        authorization = (
            f"{ALGORITHM} Credential={self._config.access_key_id}/{scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        )

        headers = {
            "Authorization": authorization,
            "Content-Type": content_type,
            "Host": host,
            "x-amz-content-sha256": payload_hash,
            "x-amz-date": request_date,
        }
        return SignedRequest(method="PUT", url=url, headers=headers, amz_date=request_date, signature=signature)

    def presign_put(
        self,
        key: str,
        expires_in: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Create a presigned PUT URL valid for expires_in seconds.

        Only the host header is signed and the payload is UNSIGNED-PAYLOAD,
        so the holder can upload any body until the URL expires.

        Raises:
            SignerMisconfigured: If credentials are missing.
            ValueError: If expires_in is outside 1..604800.
        """
        self._require_credentials()

        expires = self._config.presigned_url_ttl_seconds if expires_in is None else expires_in
        if not 1 <= expires <= MAX_PRESIGN_SECONDS:
            raise ValueError(f"expires_in must be between 1 and {MAX_PRESIGN_SECONDS} seconds")

        request_date = amz_date(now or self._clock())
        date_stamp = request_date[:8]
        host = self._config.endpoint_host
        scope = credential_scope(date_stamp)
        canonical_uri, url = self._target(key)

        params = {
            "X-Amz-Algorithm": ALGORITHM,
            "X-Amz-Credential": f"{self._config.access_key_id}/{scope}",
            "X-Amz-Date": request_date,
            "X-Amz-Expires": str(expires),
            "X-Amz-SignedHeaders": "host",
        }
        canonical_query = "&".join(
            f"{uri_encode(name)}={uri_encode(value)}" for name, value in sorted(params.items())
        )

        canonical = canonical_request(
            "PUT", canonical_uri, canonical_query, f"host:{host}\n", "host", UNSIGNED_PAYLOAD
        )
        signature = _signature(
            self._config.secret_access_key, date_stamp, string_to_sign(request_date, scope, canonical)
        )

        return f"{url}?{canonical_query}&X-Amz-Signature={signature}"

    def object_key(self, filename: str, timestamped: bool = False, now: Optional[datetime] = None) -> str:
        """
        Object key for a photo filename.

        photos/{filename} for client-side uploads, photos/{epoch_ms}-{filename}
        when timestamped (the server-side convention).
        """
        if timestamped:
            return f"{PHOTO_PREFIX}/{epoch_ms(now or self._clock())}-{filename}"
        return f"{PHOTO_PREFIX}/{filename}"

    def public_url(self, key: str) -> str:
        return f"{self._config.resolved_public_base}/{key}"
