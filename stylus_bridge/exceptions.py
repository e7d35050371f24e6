"""Exceptions raised by the Stylus bridge.

All errors derive from ``StylusError`` and carry an ``exit_code`` the CLI
uses when a command fails.
"""

from __future__ import annotations

from typing import Any, Optional

from stylus_bridge.exit_codes import ExitCode


class StylusError(Exception):
    """Base exception for the Stylus bridge.

    Attributes:
        message: Error message
        exit_code: Exit code to use when exiting
        details: Optional dictionary of additional error details
    """

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(StylusError):
    """Invalid configuration file or setting."""

    exit_code = ExitCode.CONFIGURATION_ERROR


class RuntimeUnavailable(StylusError):
    """No usable Node.js executable, or the engine failed to bootstrap.

    Raised when none of the candidate executables exists, none of them
    starts within the startup timeout, or the bootstrap script cannot
    load the Stylus module.
    """

    exit_code = ExitCode.RUNTIME_UNAVAILABLE


class CompilationError(StylusError):
    """Stylus reported a syntax or semantic problem in the source."""

    exit_code = ExitCode.COMPILATION_ERROR

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.filename = filename
        self.line = line
        self.column = column

    @property
    def location(self) -> Optional[str]:
        """Source location as ``file:line:column``, when known."""
        if self.filename is None and self.line is None:
            return None
        parts = [self.filename or "<string>"]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)

    def __str__(self) -> str:
        location = self.location
        if location and location not in self.message:
            return f"{self.message} (at {location})"
        return self.message

    @classmethod
    def from_payload(cls, message: str, data: Optional[Any] = None) -> "CompilationError":
        """Build from the ``data`` member of an engine error response."""
        data = data if isinstance(data, dict) else {}
        line = data.get("lineno")
        column = data.get("column")
        return cls(
            message,
            filename=data.get("filename"),
            line=int(line) if isinstance(line, (int, float)) else None,
            column=int(column) if isinstance(column, (int, float)) else None,
            details={"name": data["name"]} if data.get("name") else None,
        )


class BridgeError(StylusError):
    """Transport-level failure talking to the engine process.

    ``reason`` is one of ``exited``, ``timeout``, ``protocol``, ``io`` or
    ``not_ready``.
    """

    exit_code = ExitCode.BRIDGE_ERROR

    EXITED = "exited"
    TIMEOUT = "timeout"
    PROTOCOL = "protocol"
    IO = "io"
    NOT_READY = "not_ready"

    def __init__(
        self,
        message: str,
        reason: str = PROTOCOL,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.reason = reason

    @classmethod
    def timeout(cls, timeout_seconds: float) -> "BridgeError":
        """Create a timeout error."""
        return cls(
            f"Engine did not respond within {timeout_seconds}s",
            reason=cls.TIMEOUT,
        )


class InvalidSourceError(StylusError):
    """The source handed to a pipeline could not be read."""

    exit_code = ExitCode.INVALID_ARGUMENT
