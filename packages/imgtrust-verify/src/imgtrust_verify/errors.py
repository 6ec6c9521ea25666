"""Error taxonomy for image trust verification.

Only ``PreconditionError`` and ``SignatureVerificationFailure`` end a run.
Fetch and parse errors are caught by the pipeline and turned into report
warnings.
"""

from __future__ import annotations

from imgtrust_core.deps import PreconditionError


class TrustError(Exception):
    """Base class for verification errors."""


class SignatureVerificationFailure(TrustError):
    """No signature matched the expected identity and issuer."""


class ManifestFetchError(TrustError):
    """A manifest could not be fetched or decoded."""

    def __init__(self, ref: str, reason: str) -> None:
        self.ref = ref
        self.reason = reason
        super().__init__(f"failed to fetch manifest {ref}: {reason}")


class BlobFetchError(TrustError):
    """A content blob could not be fetched."""

    def __init__(self, digest: str, reason: str) -> None:
        self.digest = digest
        self.reason = reason
        super().__init__(f"failed to fetch blob {digest}: {reason}")


class AttestationParseError(TrustError):
    """An attestation document is not valid JSON."""

    def __init__(self, digest: str, reason: str) -> None:
        self.digest = digest
        self.reason = reason
        super().__init__(f"could not parse attestation {digest}: {reason}")


__all__ = [
    "AttestationParseError",
    "BlobFetchError",
    "ManifestFetchError",
    "PreconditionError",
    "SignatureVerificationFailure",
    "TrustError",
]
