# propertysnap/storage/__init__.py
"""
PropertySnap Storage Module - Object storage for photo evidence

Signs uploads for S3-compatible stores (Cloudflare R2) and runs the
direct / proxied / local-fallback upload pipeline.
"""

from propertysnap.storage.signer import SignedRequest, StorageSigner
from propertysnap.storage.upload import (
    StoredPhoto,
    UploadPipeline,
    generate_filename,
    is_cloud_url,
)

__all__ = [
    "SignedRequest",
    "StorageSigner",
    "StoredPhoto",
    "UploadPipeline",
    "generate_filename",
    "is_cloud_url",
]
