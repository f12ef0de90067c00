"""
Safety Guardian — Keeps drive scans strictly read-only.
Validates every outbound HTTP method/URL pair before the Graph client sends it.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("m365_drive_scanner.safety")

# ─── Blocked HTTP Methods ────────────────────────────────────────────────────

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# driveItem actions that change content, sharing or state
BLOCKED_URL_PATTERNS = [
    re.compile(r"/invite$", re.IGNORECASE),
    re.compile(r"/copy$", re.IGNORECASE),
    re.compile(r"/createLink$", re.IGNORECASE),
    re.compile(r"/createUploadSession$", re.IGNORECASE),
    re.compile(r"/checkin$", re.IGNORECASE),
    re.compile(r"/checkout$", re.IGNORECASE),
    re.compile(r"/restore$", re.IGNORECASE),
    re.compile(r"/permanentDelete$", re.IGNORECASE),
    re.compile(r"/follow$", re.IGNORECASE),
    re.compile(r"/unfollow$", re.IGNORECASE),
]


class SafetyViolation(Exception):
    """Raised when a write operation is attempted."""
    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SafetyGuardian:
    """
    Validates every outbound HTTP request to ensure read-only operation.
    Keeps a count of checks and a log of violations for the scan report.
    """

    def __init__(self):
        self.violations: list[dict] = []
        self.checks_performed: int = 0
        self.started_at: str = _utc_now()

    def validate_request(self, method: str, url: str, body: Optional[dict] = None) -> bool:
        """
        Validate that a request is read-only.
        Returns True if safe, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        # Reads are always safe, even when a site or folder is named "Restore"
        if method_upper in ("GET", "HEAD", "OPTIONS"):
            return True

        for pattern in BLOCKED_URL_PATTERNS:
            if pattern.search(url):
                self._record_violation(method_upper, url, "Blocked drive action URL")
                raise SafetyViolation(
                    f"SAFETY VIOLATION: Drive action URL blocked: {method_upper} {url}"
                )

        if method_upper in WRITE_METHODS:
            self._record_violation(method_upper, url, "Write HTTP method blocked")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Write method blocked: {method_upper} {url}"
            )

        return True

    def _record_violation(self, method: str, url: str, reason: str):
        """Record a safety violation for audit."""
        self.violations.append({
            "timestamp": _utc_now(),
            "method": method,
            "url": url,
            "reason": reason,
        })
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the safety audit record embedded in scan exports."""
        return {
            "mode": "READ-ONLY",
            "started_at": self.started_at,
            "checks_performed": self.checks_performed,
            "violations_detected": len(self.violations),
            "violations": self.violations,
            "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
        }
