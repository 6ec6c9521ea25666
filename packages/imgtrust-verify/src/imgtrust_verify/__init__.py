"""imgtrust verify: keyless signature and attestation checks for OCI images."""

from imgtrust_verify.plugin import TrustPlugin


def create_plugin() -> TrustPlugin:
    """Entry point used by the imgtrust CLI."""
    return TrustPlugin()
