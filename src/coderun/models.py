"""Pydantic models for request and response bodies.

These models express the structure expected by the HTTP API.  They mirror
the payload the code editor front end sends (``code``, ``language``,
``input``) and expose the structured execution result.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .executor import ExecutionRequest, ExecutionResult


class ExecuteRequest(BaseModel):
    """Request body for executing code."""

    language: str = Field(..., description="Language identifier, e.g. 'cpp' or 'python'.")
    code: str = Field(..., description="Source code to execute.")
    input: Optional[str] = Field(
        default=None, description="Standard input to pass to the program."
    )
    stdin: Optional[str] = Field(
        default=None, description="Alias of 'input'. Ignored when 'input' is set."
    )

    def to_execution_request(self) -> ExecutionRequest:
        stdin = self.input if self.input is not None else (self.stdin or "")
        return ExecutionRequest(source_code=self.code, language=self.language, stdin=stdin)


class ExecuteResponse(BaseModel):
    """Response body for code execution."""

    success: bool
    output: str
    error_kind: str
    language: str
    exit_code: Optional[int] = None
    duration_ms: int = 0

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecuteResponse":
        return cls(
            success=result.success,
            output=result.output,
            error_kind=result.error_kind.value,
            language=result.language,
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
        )


class LanguageInfo(BaseModel):
    """A language the service can run."""

    language: str
    name: str
    extension: str
    kind: str
    available: bool


class LanguageList(BaseModel):
    languages: List[LanguageInfo] = Field(default_factory=list)
