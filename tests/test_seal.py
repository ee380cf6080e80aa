"""
Unit tests for record sealing.
"""

import json

import pytest
from jwcrypto import jwk
from jwcrypto.common import base64url_decode, base64url_encode

from propertysnap.seal import RecordSealer, generate_sealing_key, verify_seal
from propertysnap.verification import PhotoVerifier

from conftest import PHOTO_URI


@pytest.fixture
def sealing_key():
    return generate_sealing_key()


async def _photo(memory_reader, extractor, device):
    verifier = PhotoVerifier(reader=memory_reader, extractor=extractor, device=device)
    return await verifier.build_verified_photo(PHOTO_URI, "camera")


class TestSealing:
    """Sealing and verifying VerifiedPhoto records."""

    @pytest.mark.asyncio
    async def test_seal_and_verify(self, sealing_key, memory_reader, extractor, device):
        """A sealed record verifies and round-trips."""
        private_jwk, public_jwk = sealing_key
        photo = await _photo(memory_reader, extractor, device)

        token = RecordSealer(private_jwk, issuer="inspector-42").seal(photo)
        check = verify_seal(token, public_jwk)

        assert check.valid is True
        assert check.photo == photo
        assert check.issuer == "inspector-42"
        assert isinstance(check.sealed_at, int)

    @pytest.mark.asyncio
    async def test_header(self, sealing_key, memory_reader, extractor, device):
        """Compact JWS with EdDSA and the seal type."""
        private_jwk, _ = sealing_key
        photo = await _photo(memory_reader, extractor, device)

        token = RecordSealer(private_jwk, issuer="inspector-42").seal(photo)
        header = json.loads(base64url_decode(token.split(".")[0]))

        assert token.count(".") == 2
        assert header["alg"] == "EdDSA"
        assert header["typ"] == "propertysnap+jws"

    @pytest.mark.asyncio
    async def test_wrong_key(self, sealing_key, memory_reader, extractor, device):
        """Another key's public half does not verify."""
        private_jwk, _ = sealing_key
        _, other_public = generate_sealing_key()
        photo = await _photo(memory_reader, extractor, device)

        token = RecordSealer(private_jwk, issuer="inspector-42").seal(photo)
        check = verify_seal(token, other_public)

        assert check.valid is False
        assert check.photo is None
        assert check.error

    @pytest.mark.asyncio
    async def test_tampered_record(self, sealing_key, memory_reader, extractor, device):
        """Editing the sealed record breaks the signature."""
        private_jwk, public_jwk = sealing_key
        photo = await _photo(memory_reader, extractor, device)
        token = RecordSealer(private_jwk, issuer="inspector-42").seal(photo)

        header, payload, signature = token.split(".")
        claims = json.loads(base64url_decode(payload))
        claims["record"]["capturedAtIso"] = "2020-01-01T00:00:00.000Z"
        forged = ".".join([header, base64url_encode(json.dumps(claims)), signature])

        assert verify_seal(forged, public_jwk).valid is False

    def test_empty_token(self, sealing_key):
        check = verify_seal("", sealing_key[1])

        assert check.valid is False
        assert check.error == "Empty seal"

    def test_garbage_token(self, sealing_key):
        assert verify_seal("not.a.seal", sealing_key[1]).valid is False

    def test_public_key_export(self, sealing_key):
        private_jwk, public_jwk = sealing_key
        sealer = RecordSealer(private_jwk, issuer="svc")

        assert json.loads(sealer.public_key_jwk())["x"] == json.loads(public_jwk)["x"]
        assert "d" not in json.loads(sealer.public_key_jwk())


class TestSealerConfiguration:
    """Constructor validation."""

    def test_missing_key(self):
        with pytest.raises(ValueError):
            RecordSealer("", issuer="svc")

    def test_missing_issuer(self, sealing_key):
        with pytest.raises(ValueError):
            RecordSealer(sealing_key[0], issuer="")

    def test_non_ed25519_key(self):
        """Symmetric keys are rejected."""
        key = jwk.JWK.generate(kty="oct", size=256)

        with pytest.raises(ValueError, match="must be Ed25519"):
            RecordSealer(key.export(), issuer="svc")

    def test_malformed_key(self):
        with pytest.raises(ValueError, match="not a readable JWK"):
            RecordSealer("{not json", issuer="svc")

    def test_public_key_cannot_seal(self, sealing_key):
        """Handing over the public half is rejected up front."""
        with pytest.raises(ValueError, match="no private part"):
            RecordSealer(sealing_key[1], issuer="svc")
