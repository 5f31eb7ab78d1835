"""Command-related data structures."""

from __future__ import annotations

from pydantic import BaseModel


class ExecutionResult(BaseModel):
    """Outcome of one remote command.  Produced once, never mutated."""

    destination: str
    command: list[str]
    succeeded: bool
    stdout: str = ""
    stderr: str = ""
    exit_status: int | None = None
    timed_out: bool = False
    elapsed_time: float = 0.0

    model_config = {"frozen": True}
