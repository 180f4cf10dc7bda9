"""Repository query errors: the git process failed or could not be run."""

from typing import Optional, Sequence

from .base import BranchScopeError


class HistoryQueryError(BranchScopeError):
    """Raised when an upstream repository query fails.

    Propagated to the caller of a build; never retried by the core.
    """

    def __init__(
        self,
        reason: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
    ):
        details = {"reason": reason}
        if command:
            details["command"] = " ".join(command)
        if returncode is not None:
            details["returncode"] = str(returncode)
        super().__init__("Repository query failed", details=details)
        self.reason = reason
        self.command = list(command) if command else []
        self.returncode = returncode


class GitNotFoundError(HistoryQueryError):
    """Raised when the git executable cannot be found."""

    def __init__(self, executable: str = "git"):
        super().__init__(f"executable not found: {executable}")
        self.executable = executable
