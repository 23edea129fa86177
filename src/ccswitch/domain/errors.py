"""Error taxonomy shared by every ccswitch layer."""

from __future__ import annotations

ERROR_REMEDIATIONS = {
    "NOT_FOUND": "Check the app type and id with `ccswitch provider list` or `ccswitch mcp list`.",
    "VALIDATION": "Fix the reported field; settings must match the app's provider schema.",
    "IO_FAILURE": "Check permissions and free space for the reported path, then retry.",
    "LOCK_FAILURE": "Another operation holds the config lock; retry once it finishes.",
    "CONFLICT": "Pass --overwrite to replace the existing entry in the target app.",
    "UNSUPPORTED": "This operation is not available for the selected app type.",
}


class CcSwitchError(RuntimeError):
    """Base class for failures surfaced to callers."""

    code = "ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def remediation(self) -> str | None:
        return remediation_for(self.code)


class NotFoundError(CcSwitchError):
    code = "NOT_FOUND"


class ValidationError(CcSwitchError, ValueError):
    code = "VALIDATION"


class IOFailure(CcSwitchError):
    code = "IO_FAILURE"

    def __init__(self, message: str, path: object | None = None) -> None:
        self.path = path
        super().__init__(message)


class LockFailure(CcSwitchError):
    code = "LOCK_FAILURE"


class ConflictError(CcSwitchError):
    code = "CONFLICT"


class UnsupportedError(CcSwitchError):
    code = "UNSUPPORTED"


def remediation_for(code: str) -> str | None:
    """Return default remediation text for a given error code."""

    return ERROR_REMEDIATIONS.get(code)


__all__ = [
    "CcSwitchError",
    "ConflictError",
    "ERROR_REMEDIATIONS",
    "IOFailure",
    "LockFailure",
    "NotFoundError",
    "UnsupportedError",
    "ValidationError",
    "remediation_for",
]
