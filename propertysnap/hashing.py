"""
Content fingerprints for photo bytes.

The hash recorded at capture time is the baseline for later integrity
checks. Hashing never fails loudly: an unreadable photo hashes to the empty
string, which downstream checks treat as "no baseline".
"""

import hashlib
import logging
import re
from typing import Optional

from propertysnap.capabilities import ByteReader, LocalFileReader
from propertysnap.exceptions import ReadError


logger = logging.getLogger(__name__)

_HEX_SHA256 = re.compile(r"^[0-9a-f]{64}$")


def hash_bytes(data: bytes) -> str:
    """Lowercase hex SHA-256 of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def is_valid_hash(value: str) -> bool:
    """True for a 64-char lowercase hex SHA-256 string."""
    return bool(_HEX_SHA256.match(value or ""))


async def hash_photo(uri: str, reader: Optional[ByteReader] = None) -> str:
    """
    Compute the SHA-256 fingerprint of the photo at uri.

    Args:
        uri: Local file URI or path of the photo.
        reader: Byte reader to use (default: local filesystem).

    Returns:
        Lowercase hex digest, or "" if the bytes could not be read.
    """
    reader = reader or LocalFileReader()
    try:
        data = await reader.read(uri)
    except ReadError as e:
        logger.warning(f"Error generating photo hash: {e}")
        return ""
    except Exception as e:
        logger.warning(f"Unexpected error hashing {uri}: {e}")
        return ""

    return hash_bytes(data)
