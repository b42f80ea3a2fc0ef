"""
Error taxonomy.

Callers react to the type, not the message:
ProbeUnavailable is recorded as an unknown state, never as absent.
ConvergenceFailed earns one fallback attempt.
FatalPrerequisiteMissing aborts the whole run with exit status 1.
"""


class ProvisionError(Exception):
    """Base class for all provisioning exceptions."""


class ProbeUnavailable(ProvisionError):
    """Raised when the tool used to probe a resource cannot be run."""


class ResourceAbsent(ProvisionError):
    """Raised when a resource is missing and nothing can create it."""


class ConvergenceFailed(ProvisionError):
    """Raised when an apply or fallback action does not complete."""


class VerificationFailed(ProvisionError):
    """Raised when the post-apply probe still does not match."""


class FatalPrerequisiteMissing(ProvisionError):
    """Raised when a prerequisite the rest of the run relies on is absent."""


class CommandFailed(ConvergenceFailed, RuntimeError):
    """Raised by run_cmd(check=True) on a non-zero exit status."""

    def __init__(self, message: str, *, returncode: int) -> None:
        super().__init__(message)
        self.returncode = returncode
