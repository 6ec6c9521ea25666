"""
Keyless signature verification.

The pipeline depends only on the ``SignatureVerifier`` protocol;
``CosignVerifier`` satisfies it by shelling out to ``cosign verify``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from imgtrust_verify.commands import TIMEOUT_MESSAGE, run_cmd
from imgtrust_verify.constants import DEFAULT_VERIFY_TIMEOUT
from imgtrust_verify.models import ImageReference, SignatureRecord, VerificationResult

logger = logging.getLogger(__name__)


class SignatureVerifier(Protocol):
    def verify(
        self, reference: ImageReference, identity_pattern: str, oidc_issuer: str
    ) -> VerificationResult:
        """Return the valid signatures matching both identity and issuer."""
        ...


def parse_signature_records(output: str) -> list[SignatureRecord]:
    """
    Parse the JSON array ``cosign verify`` prints on success.

    Each element is a simple-signing payload; the manifest digest lives under
    ``critical.image.docker-manifest-digest``. Elements without a digest are
    skipped.

    Raises:
        ValueError: If the output is not a JSON array.
    """
    payloads = json.loads(output)
    if not isinstance(payloads, list):
        raise ValueError("expected a JSON array of signature payloads")

    records = []
    for payload in payloads:
        if not isinstance(payload, dict):
            continue
        critical = payload.get("critical") or {}
        image = critical.get("image") if isinstance(critical, dict) else None
        digest = image.get("docker-manifest-digest") if isinstance(image, dict) else None
        if not isinstance(digest, str) or not digest:
            continue
        optional: Any = payload.get("optional") or {}
        if not isinstance(optional, dict):
            optional = {}
        records.append(
            SignatureRecord(
                manifest_digest=digest,
                identity=optional.get("Subject"),
                issuer=optional.get("Issuer"),
            )
        )
    return records


class CosignVerifier:
    """Verify keyless signatures with the cosign CLI."""

    REQUIRED_TOOLS = ["cosign"]

    def __init__(self, timeout: int = DEFAULT_VERIFY_TIMEOUT):
        self.timeout = timeout

    def verify(
        self, reference: ImageReference, identity_pattern: str, oidc_issuer: str
    ) -> VerificationResult:
        """
        Run ``cosign verify`` against the reference.

        Any failure, including a timeout, produces ``ok=False``: verification
        fails closed.
        """
        cmd = [
            "cosign", "verify",
            "--certificate-identity-regexp", identity_pattern,
            "--certificate-oidc-issuer", oidc_issuer,
            "--output", "json",
            reference.full_name,
        ]
        success, stdout, stderr = run_cmd(cmd, timeout=self.timeout)

        if not success:
            if stderr == TIMEOUT_MESSAGE:
                error = f"cosign verify timed out after {self.timeout}s"
            else:
                error = _last_line(stderr) or "cosign verify failed"
            logger.info(f"Signature verification failed for {reference}: {error}")
            return VerificationResult(ok=False, error=error)

        try:
            records = parse_signature_records(stdout)
        except ValueError as e:
            logger.warning(f"Could not parse cosign output for {reference}: {e}")
            return VerificationResult(ok=False, error=f"unreadable cosign output: {e}")

        if not records:
            return VerificationResult(ok=False, error="no matching signatures found")

        logger.debug(f"Verified {len(records)} signature(s) for {reference}")
        return VerificationResult(ok=True, records=tuple(records))


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""
