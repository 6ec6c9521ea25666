"""ToolPlugin implementation for image trust verification."""

from __future__ import annotations

import logging
from typing import Any

from imgtrust_core.context import ExecutionContext
from imgtrust_core.deps import assert_dependencies
from imgtrust_core.plugin import ResultStatus, ToolParam, ToolResult

from imgtrust_verify.config import Settings
from imgtrust_verify.constants import DEFAULT_TAG, __version__
from imgtrust_verify.models import ImageReference
from imgtrust_verify.pipeline import TrustVerifier
from imgtrust_verify.registry import CraneRegistryClient, HttpRegistryClient, RegistryClient
from imgtrust_verify.report import exit_status, render_json, render_text
from imgtrust_verify.signature import CosignVerifier

logger = logging.getLogger(__name__)


def required_tools(settings: Settings) -> list[str]:
    """External binaries the configured transports need."""
    tools = list(CosignVerifier.REQUIRED_TOOLS)
    if settings.transport == "crane":
        tools.extend(CraneRegistryClient.REQUIRED_TOOLS)
    return tools


def create_registry_client(settings: Settings) -> RegistryClient:
    if settings.transport == "crane":
        return CraneRegistryClient(
            manifest_timeout=settings.manifest_timeout,
            blob_timeout=settings.blob_timeout,
        )
    return HttpRegistryClient(
        manifest_timeout=settings.manifest_timeout,
        blob_timeout=settings.blob_timeout,
    )


class TrustPlugin:
    """Verify an image's keyless signature and summarize its attestations."""

    name = "imgtrust"
    description = "Verify container image signatures and inspect SBOM/provenance attestations"
    version = __version__

    def get_params(self) -> list[ToolParam]:
        return [
            ToolParam(
                name="tag",
                description=f"Image tag or sha256 digest to verify (default: {DEFAULT_TAG})",
                default=DEFAULT_TAG,
                positional=True,
            ),
        ]

    def run(self, args: dict[str, Any], ctx: ExecutionContext) -> ToolResult:
        """Execute verification.

        Raises:
            PreconditionError: If cosign (or crane, for the crane transport)
                               is not installed. Raised before any network call.
            ConfigError: If the configuration is invalid.
        """
        settings = Settings.from_mapping(ctx.config)
        assert_dependencies(required_tools(settings))

        reference = ImageReference.from_parts(
            settings.registry, settings.repository, args.get("tag") or DEFAULT_TAG
        )

        pipeline = TrustVerifier(
            verifier=CosignVerifier(timeout=settings.verify_timeout),
            registry=create_registry_client(settings),
            max_workers=settings.max_workers,
            ctx=ctx,
        )
        report = pipeline.run(reference, settings.identity_regexp, settings.oidc_issuer)

        if ctx.is_cancelled:
            return ToolResult(status=ResultStatus.CANCELLED, summary="Cancelled by user")

        output = render_json(report) if settings.output == "json" else render_text(report)

        if exit_status(report) == 0:
            status = ResultStatus.SUCCESS
            summary = (
                f"Signature verified for {reference}: "
                f"{len(report.attestations)} attestation(s), {len(report.warnings)} warning(s)"
            )
        else:
            status = ResultStatus.FAILURE
            summary = f"Signature verification failed for {reference}"

        return ToolResult(
            status=status,
            summary=summary,
            data={"output": output, "report": report.to_dict()},
        )
