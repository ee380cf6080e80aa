"""
Error taxonomy for the photo evidence pipeline.

These are raised by the collaborators (byte readers, media libraries, the
storage signer). The public operations catch them and encode the failure in
their result records, so callers of the pipeline never see them directly.
"""


class EvidenceError(Exception):
    """Base exception for photo evidence errors."""

    pass


class ReadError(EvidenceError):
    """Raised when the bytes behind a photo URI cannot be read."""

    def __init__(self, uri: str, reason: str = "unreadable"):
        self.uri = uri
        self.reason = reason
        super().__init__(f"Could not read {uri}: {reason}")


class PermissionDenied(EvidenceError):
    """Raised when the media library refuses access."""

    def __init__(self, message: str = "Media library permission not granted"):
        super().__init__(message)


class RemoteFailure(EvidenceError):
    """Raised when a signed or proxied upload fails."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class SignerMisconfigured(EvidenceError, ValueError):
    """Raised synchronously by the signer when credentials are missing."""

    def __init__(self, message: str = "R2 credentials not configured"):
        super().__init__(message)
