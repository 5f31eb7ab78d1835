"""Error taxonomy shared by services and routers."""

from __future__ import annotations


class DashboardError(Exception):
    """Structured error from a dashboard operation."""

    code = "dashboard_error"

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        if code:
            self.code = code


class LaunchFailure(DashboardError):
    """The remote-execution channel itself could not be invoked."""

    code = "launch_failure"


class RemoteCommandFailure(DashboardError):
    """The remote command ran and returned a non-zero status."""

    code = "remote_command_failed"

    def __init__(self, message: str, stderr: str = "", code: str = "") -> None:
        super().__init__(message, code)
        self.stderr = stderr


class InvalidTarget(DashboardError):
    """Bad target addressing or an operation the target does not support."""

    code = "invalid_target"


class ScriptNotFound(DashboardError):
    code = "script_not_found"


class SuggestionUnavailable(DashboardError):
    code = "suggestion_unavailable"
