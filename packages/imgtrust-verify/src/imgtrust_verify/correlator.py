"""
Map attestation manifests to the platform of the image they describe.

BuildKit points each attestation entry at its subject image through the
``vnd.docker.reference.digest`` annotation; the subject's own index entry
carries the platform.
"""

from __future__ import annotations

import logging
from typing import Optional

from imgtrust_verify.models import UNKNOWN_PLATFORM, Manifest, Platform

logger = logging.getLogger(__name__)


def _resolve(manifest: Manifest, attestation_digest: str) -> tuple[Platform, Optional[str]]:
    """Return the platform and, when it could not be resolved, the reason."""
    entry = manifest.find(attestation_digest)
    if entry is None:
        return UNKNOWN_PLATFORM, f"attestation {attestation_digest} is not in the image index"

    subject_digest = entry.reference_digest
    if not subject_digest:
        return UNKNOWN_PLATFORM, f"attestation {attestation_digest} has no reference-digest annotation"

    subject = manifest.find(subject_digest)
    if subject is None:
        return UNKNOWN_PLATFORM, (
            f"attestation {attestation_digest} references {subject_digest}, "
            "which is not in the image index"
        )

    if subject.platform is None:
        return UNKNOWN_PLATFORM, f"image {subject_digest} has no platform information"

    return subject.platform, None


def correlate(manifest: Manifest, attestation_digest: str) -> Platform:
    """Platform of the image an attestation describes, or ``unknown/unknown``."""
    platform, _ = _resolve(manifest, attestation_digest)
    return platform


def build_platform_map(
    manifest: Manifest, attestation_digests: list[str]
) -> tuple[dict[str, Platform], list[str]]:
    """
    Correlate every attestation digest once.

    Returns:
        (digest -> platform mapping, warnings for unresolved attestations)
    """
    platforms: dict[str, Platform] = {}
    warnings: list[str] = []

    for digest in attestation_digests:
        platform, problem = _resolve(manifest, digest)
        platforms[digest] = platform
        if problem:
            logger.warning(f"Platform unknown: {problem}")
            warnings.append(f"Platform unknown: {problem}")

    return platforms, warnings
