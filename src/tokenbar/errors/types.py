"""Provider error taxonomy."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Closed set of failure kinds an adapter can report."""

    NOT_AVAILABLE = "not_available"
    AUTHENTICATION_REQUIRED = "authentication_required"
    SESSION_EXPIRED = "session_expired"
    PARSE_FAILED = "parse_failed"
    NETWORK_ERROR = "network_error"
    EXECUTION_FAILED = "execution_failed"


class ProviderError(Exception):
    """Typed failure returned by a provider fetch.

    Session expiry is kept distinct from missing authentication so callers
    can suggest re-authenticating rather than first-time setup.
    """

    def __init__(self, kind: ErrorKind, detail: str | None = None) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """User-facing message for this error."""
        match self.kind:
            case ErrorKind.NOT_AVAILABLE:
                return "Provider not available"
            case ErrorKind.AUTHENTICATION_REQUIRED:
                return "Authentication required"
            case ErrorKind.SESSION_EXPIRED:
                return "Session expired, please re-authenticate"
            case ErrorKind.PARSE_FAILED:
                return f"Parse error: {self.detail}"
            case ErrorKind.NETWORK_ERROR:
                return f"Network error: {self.detail}"
            case ErrorKind.EXECUTION_FAILED:
                return f"Execution failed: {self.detail}"

    @property
    def is_auth_error(self) -> bool:
        return self.kind in (
            ErrorKind.AUTHENTICATION_REQUIRED,
            ErrorKind.SESSION_EXPIRED,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderError):
            return NotImplemented
        return self.kind == other.kind and self.detail == other.detail

    def __hash__(self) -> int:
        return hash((self.kind, self.detail))

    def __repr__(self) -> str:
        return f"ProviderError({self.kind.value!r}, {self.detail!r})"

    @classmethod
    def not_available(cls) -> ProviderError:
        return cls(ErrorKind.NOT_AVAILABLE)

    @classmethod
    def authentication_required(cls) -> ProviderError:
        return cls(ErrorKind.AUTHENTICATION_REQUIRED)

    @classmethod
    def session_expired(cls) -> ProviderError:
        return cls(ErrorKind.SESSION_EXPIRED)

    @classmethod
    def parse_failed(cls, detail: str) -> ProviderError:
        return cls(ErrorKind.PARSE_FAILED, detail)

    @classmethod
    def network_error(cls, detail: str) -> ProviderError:
        return cls(ErrorKind.NETWORK_ERROR, detail)

    @classmethod
    def execution_failed(cls, detail: str) -> ProviderError:
        return cls(ErrorKind.EXECUTION_FAILED, detail)
