"""
Verification workflow: signature first, then attestation inspection.

The signature check fails closed. Once it passes, every later problem
(fetch errors, unresolved platforms, damaged documents) is recorded as a
report warning and never changes the verdict.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from imgtrust_core.context import ExecutionContext
from imgtrust_verify.correlator import build_platform_map
from imgtrust_verify.errors import ManifestFetchError, SignatureVerificationFailure
from imgtrust_verify.extractor import AttestationExtractor, ExtractionResult
from imgtrust_verify.locator import locate
from imgtrust_verify.models import ImageReference, Platform, VerificationReport, VerificationResult
from imgtrust_verify.registry import RegistryClient
from imgtrust_verify.signature import SignatureVerifier

logger = logging.getLogger(__name__)


class TrustVerifier:
    """Runs one verification of one image reference."""

    def __init__(
        self,
        verifier: SignatureVerifier,
        registry: RegistryClient,
        max_workers: int = 1,
        ctx: Optional[ExecutionContext] = None,
    ):
        self.verifier = verifier
        self.registry = registry
        self.max_workers = max_workers
        self.ctx = ctx or ExecutionContext()

    def run(
        self, reference: ImageReference, identity_pattern: str, oidc_issuer: str
    ) -> VerificationReport:
        report = VerificationReport(
            image_reference=reference,
            identity_pattern=identity_pattern,
            oidc_issuer=oidc_issuer,
        )

        self.ctx.progress(0.0, f"Verifying signature for {reference}")
        try:
            result = self._verify_signature(reference, identity_pattern, oidc_issuer)
        except SignatureVerificationFailure as e:
            report.signature_error = str(e)
            self.ctx.progress(1.0, "Signature verification failed")
            return report

        report.signature_verified = True
        report.signature_digest = result.records[0].manifest_digest
        self._inspect_attestations(report, reference.with_digest(report.signature_digest))
        self.ctx.progress(1.0, "Verification complete")
        return report

    def _verify_signature(
        self, reference: ImageReference, identity_pattern: str, oidc_issuer: str
    ) -> VerificationResult:
        result = self.verifier.verify(reference, identity_pattern, oidc_issuer)
        if not result.ok or not result.records:
            raise SignatureVerificationFailure(result.error or "no matching signatures found")
        return result

    def _inspect_attestations(self, report: VerificationReport, pinned: ImageReference) -> None:
        """Fill in attestations for the exact index digest that was verified."""
        self.ctx.progress(0.3, "Checking for attestations")
        try:
            manifest = self.registry.get_manifest(pinned)
        except ManifestFetchError as e:
            logger.warning(str(e))
            report.warnings.append(f"Attestations not inspected: {e}")
            return

        digests = locate(manifest)
        report.attestation_manifest_count = len(digests)
        if not digests:
            logger.info(f"No attestation manifests in {pinned}")
            return

        platforms, warnings = build_platform_map(manifest, digests)
        report.warnings.extend(warnings)

        extractor = AttestationExtractor(self.registry, pinned)
        for result in self._extract_all(extractor, digests, platforms):
            report.attestations.extend(result.attestations)
            report.skipped_predicates.extend(result.skipped_predicates)
            report.warnings.extend(result.warnings)

    def _extract_all(
        self,
        extractor: AttestationExtractor,
        digests: list[str],
        platforms: dict[str, Platform],
    ) -> list[ExtractionResult]:
        """Extract every attestation; results come back in ``digests`` order."""
        total = len(digests)

        def extract(index: int, digest: str) -> ExtractionResult:
            if self.ctx.is_cancelled:
                return ExtractionResult()
            self.ctx.progress_between(
                0.4, 0.9, index, total,
                f"Inspecting attestation {index + 1}/{total} [{platforms[digest]}]",
            )
            return extractor.classify_and_extract(digest, platforms[digest])

        if self.max_workers <= 1 or total == 1:
            return [extract(i, d) for i, d in enumerate(digests)]

        # map() yields in submission order, not completion order
        with ThreadPoolExecutor(max_workers=min(self.max_workers, total)) as pool:
            return list(pool.map(extract, range(total), digests))
