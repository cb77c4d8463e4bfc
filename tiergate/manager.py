"""High-level license management for a running application.

:class:`LicenseManager` is the long-lived object an application keeps
around.  It owns the verification cache, knows where the installed license
and the activation state live (from :class:`~tiergate.config.Settings`) and
turns failures into the flat :class:`~tiergate.models.LicenseStatus` shape
that UI widgets consume.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .api import install_envelope
from .cache import VerificationCache
from .config import Settings
from .envelope import BEGIN_MARKER
from .errors import LicenseError, LicenseNotFoundError
from .fingerprint import machine_fingerprint
from .models import (
    UNBOUND_FINGERPRINT,
    LicenseRecord,
    LicenseStatus,
    MachineFingerprint,
    StatusCode,
    VerificationResult,
)
from .state import ActivationStateStore
from .verifier import Clock, FingerprintProvider, LicenseVerifier, utc_now

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


class LicenseManager:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        fingerprint_provider: FingerprintProvider = machine_fingerprint,
    ):
        self.settings = settings or Settings()
        self.verifier = LicenseVerifier(
            ActivationStateStore(self.settings.state_path),
            secret=self.settings.secret,
            upgrade_tiers=self.settings.upgrade_tiers,
            clock=clock,
            fingerprint_provider=fingerprint_provider,
            kdf_iterations=self.settings.kdf_iterations,
        )
        self.cache = VerificationCache(self.settings.cache_ttl, clock)

    @property
    def license_path(self) -> Path:
        return self.settings.license_path

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, envelope_text: str) -> VerificationResult:
        """Run the full pipeline on *envelope_text*, bypassing the cache."""
        return self.verifier.verify(envelope_text)

    def ensure_licensed(self) -> VerificationResult:
        """Verify the installed license, reusing a recent successful result."""
        return self.cache.get_or_compute(self._verify_installed)

    def _verify_installed(self) -> VerificationResult:
        if not self.license_path.is_file():
            raise LicenseNotFoundError(f"License file not found: {self.license_path}")
        result = self.verifier.verify(self.license_path.read_text(encoding="utf-8"))
        self._check_plugin_id(result.record)
        return result

    def _check_plugin_id(self, record: LicenseRecord) -> None:
        expected = self.settings.app_plugin_id
        if expected and record.plugin_id != expected:
            # Not fatal: one license may unlock several plugins of a suite.
            logger.warning(
                "Plugin ID mismatch: expected %s, got %s. Allowing anyway.",
                expected,
                record.plugin_id,
            )

    def is_licensed(self) -> bool:
        try:
            self.ensure_licensed()
        except LicenseError:
            return False
        return True

    def license_status(self) -> LicenseStatus:
        """Status record for widgets.  License failures are reported, not raised."""
        try:
            result = self.ensure_licensed()
        except LicenseError as exc:
            return LicenseStatus(
                success=False,
                licensed=False,
                status=StatusCode(exc.kind),
                message=str(exc),
                error=type(exc).__name__,
            )

        record = result.record
        return LicenseStatus(
            success=True,
            licensed=True,
            status=StatusCode.VALID if record.is_bound else StatusCode.UNBOUND,
            days_remaining=result.days_remaining,
            license_type="MACHINE_BOUND" if record.is_bound else UNBOUND_FINGERPRINT,
            expires_at=result.expires_at,
            message=f"License valid for {result.days_remaining} more days",
            current_tier=result.current_tier,
            plugin_id=record.plugin_id,
            license_id=record.license_id,
        )

    # ------------------------------------------------------------------
    # Installation
    # ------------------------------------------------------------------

    def install_license(self, envelope_text: str) -> VerificationResult:
        """Verify *envelope_text* and, if it passes, install it.

        The cache is dropped so the next :meth:`ensure_licensed` reads the
        new file.
        """
        result = self.verifier.verify(envelope_text)
        install_envelope(envelope_text, self.license_path)
        self.cache.invalidate()
        return result

    def install_license_from_file(self, source: Union[str, Path]) -> VerificationResult:
        source = Path(source)
        if not source.is_file():
            raise LicenseNotFoundError(f"Source license file not found: {source}")
        return self.install_license(source.read_text(encoding="utf-8"))

    def clear_license(self) -> bool:
        """Delete the installed license file.  Activation history is kept."""
        self.cache.invalidate()
        if not self.license_path.is_file():
            return False
        self.license_path.chmod(0o666)
        self.license_path.unlink()
        logger.info("License file cleared from %s", self.license_path)
        return True

    def license_file_info(self) -> Dict[str, Any]:
        """Describe the installed license file without decrypting it."""
        if not self.license_path.is_file():
            return {"exists": False, "path": str(self.license_path)}

        stat = self.license_path.stat()
        content = self.license_path.read_text(encoding="utf-8", errors="replace")
        return {
            "exists": True,
            "path": str(self.license_path),
            "size": stat.st_size,
            "modified": datetime.fromtimestamp(stat.st_mtime, timezone.utc),
            "armored": BEGIN_MARKER in content,
            "preview": content[:PREVIEW_LENGTH] + "...",
        }

    def machine_fingerprint(self) -> MachineFingerprint:
        return self.verifier.fingerprint_provider()


__all__ = ["LicenseManager"]
