"""
Record sealing - signs VerifiedPhoto records for audit.

The photo hash protects the image bytes; the seal protects the record
itself (capture time, method, GPS) against later edits. A seal is a compact
Ed25519 JWS over the sorted JSON of the record.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from jwcrypto import jwk, jws
from jwcrypto.common import JWException, json_encode

from propertysnap.verification import VerifiedPhoto


logger = logging.getLogger(__name__)


SEAL_TYPE = "propertysnap+jws"


def generate_sealing_key() -> Tuple[str, str]:
    """
    Generate a fresh Ed25519 sealing key.

    Returns:
        Tuple of (private JWK JSON, public JWK JSON)
    """
    key = jwk.JWK.generate(kty="OKP", crv="Ed25519")
    return key.export_private(), key.export_public()


@dataclass(frozen=True)
class SealCheck:
    """Result of checking a sealed record."""

    valid: bool
    photo: Optional[VerifiedPhoto] = None
    issuer: Optional[str] = None
    sealed_at: Optional[int] = None
    error: Optional[str] = None


def _load_sealing_key(private_key: str) -> jwk.JWK:
    """Parse a private Ed25519 JWK; anything else cannot seal records."""
    if not private_key:
        raise ValueError("No sealing key supplied")

    try:
        key = jwk.JWK.from_json(private_key)
    except (JWException, ValueError, TypeError) as e:
        raise ValueError(f"Sealing key is not a readable JWK: {e}")

    if key.get("kty") != "OKP" or key.get("crv") != "Ed25519":
        raise ValueError(f"Sealing key must be Ed25519, got kty={key.get('kty')} crv={key.get('crv')}")
    if not key.has_private:
        raise ValueError("Sealing key has no private part; pass the private JWK, not the public one")
    return key


class RecordSealer:
    """
    Seals VerifiedPhoto records with an Ed25519 key.

    Example:
        >>> private_jwk, public_jwk = generate_sealing_key()
        >>> sealer = RecordSealer(private_jwk, issuer="inspector-42")
        >>> token = sealer.seal(photo)
        >>> verify_seal(token, public_jwk).valid
        True
    """

    def __init__(self, private_key: str, issuer: str):
        """
        Args:
            private_key: JWK JSON string containing the Ed25519 private key.
            issuer: Who is sealing (device, inspector or service id).

        Raises:
            ValueError: If the key or issuer is missing or invalid.
        """
        if not issuer:
            raise ValueError("A seal needs an issuer (inspector, device or service id)")

        self.issuer = issuer
        self._key = _load_sealing_key(private_key)

    def seal(self, photo: VerifiedPhoto) -> str:
        """Return the compact JWS sealing photo."""
        claims = {
            "iss": self.issuer,
            "iat": int(time.time()),
            "record": photo.to_dict(),
        }
        token = jws.JWS(json.dumps(claims, sort_keys=True, separators=(",", ":")))
        protected_header = {
            "alg": "EdDSA",
            "typ": SEAL_TYPE,
            "kid": self._key.get("kid") or self.issuer,
        }
        token.add_signature(self._key, None, json_encode(protected_header), None)
        return token.serialize(compact=True)

    def public_key_jwk(self) -> str:
        return self._key.export_public()


def verify_seal(token: str, public_key_jwk: str) -> SealCheck:
    """
    Verify a sealed record and return the record it carries.

    Never raises; failures are reported in SealCheck.error.
    """
    if not token:
        return SealCheck(valid=False, error="Empty seal")

    try:
        key = jwk.JWK.from_json(public_key_jwk)
        jws_token = jws.JWS()
        jws_token.deserialize(token)
        jws_token.verify(key)

        payload = jws_token.payload
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        claims = json.loads(payload)

        return SealCheck(
            valid=True,
            photo=VerifiedPhoto.from_dict(claims["record"]),
            issuer=claims.get("iss"),
            sealed_at=claims.get("iat"),
        )
    except JWException as e:
        logger.debug(f"Seal verification failed: {e}")
        return SealCheck(valid=False, error=f"Invalid seal: {e}")
    except (KeyError, ValueError) as e:
        logger.debug(f"Malformed sealed record: {e}")
        return SealCheck(valid=False, error=f"Malformed seal: {e}")
    except Exception as e:
        logger.debug(f"Seal check error: {e}")
        return SealCheck(valid=False, error=str(e))
