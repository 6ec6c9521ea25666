"""Find attestation manifests in an image index."""

from __future__ import annotations

from imgtrust_verify.constants import ATTESTATION_MANIFEST_TYPE
from imgtrust_verify.models import Manifest


def locate(manifest: Manifest) -> list[str]:
    """
    Return the digests of entries annotated as attestation manifests.

    Order follows the index. An empty list means the image carries no
    attestations, which is a valid result rather than an error.
    """
    return [
        entry.digest
        for entry in manifest.entries
        if entry.reference_type == ATTESTATION_MANIFEST_TYPE
    ]
