from __future__ import annotations

from enum import Enum


class PlentyErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({PlentyErrorKind.TIMEOUT, PlentyErrorKind.CONNECTION, PlentyErrorKind.SERVER_ERROR})

USER_MESSAGES: dict[PlentyErrorKind, str] = {
    PlentyErrorKind.TIMEOUT: "The request to PlentyMarkets timed out. Please try again.",
    PlentyErrorKind.CONNECTION: "Could not connect to PlentyMarkets. Please check your internet connection and try again.",
    PlentyErrorKind.AUTHENTICATION: "Authentication with PlentyMarkets failed. Please check your credentials.",
    PlentyErrorKind.SERVER_ERROR: "PlentyMarkets is experiencing issues. Please try again later.",
    PlentyErrorKind.UNKNOWN: "An unexpected error occurred while fetching data. Please try again.",
}


class PlentyApiError(Exception):
    """Classified failure talking to the PlentyMarkets REST API."""

    def __init__(self, message: str, kind: PlentyErrorKind = PlentyErrorKind.UNKNOWN, status_code: int = 0):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    def to_payload(self) -> dict:
        return {
            "message": self.user_message,
            "type": self.kind.value,
            "retryable": self.retryable,
        }

    @classmethod
    def timeout(cls, message: str) -> PlentyApiError:
        return cls(message, PlentyErrorKind.TIMEOUT, 408)

    @classmethod
    def connection(cls, message: str) -> PlentyApiError:
        return cls(message, PlentyErrorKind.CONNECTION, 503)

    @classmethod
    def authentication(cls, message: str) -> PlentyApiError:
        return cls(message, PlentyErrorKind.AUTHENTICATION, 401)

    @classmethod
    def server_error(cls, message: str) -> PlentyApiError:
        return cls(message, PlentyErrorKind.SERVER_ERROR, 500)

    def __repr__(self) -> str:
        return f"PlentyApiError(kind={self.kind.value!r}, status_code={self.status_code}, message={self.message!r})"
