"""Errors raised while talking to the upstream registry."""

from __future__ import annotations


class FetchError(RuntimeError):
    """Raised when a catalogue page cannot be fetched from the registry.

    Attributes
    ----------
    status_code
        HTTP status of the last response, when one was received.
    attempts
        Number of requests made before giving up.

    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        attempts: int = 1,
    ) -> None:
        """Initialise with a message, optional HTTP status and attempt count."""
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, *, attempts: int = 1) -> FetchError:
        """Return an error for non-2xx HTTP responses."""
        return cls(
            f"Registry HTTP {status_code} after {attempts} attempt(s)",
            status_code=status_code,
            attempts=attempts,
        )

    @classmethod
    def network_error(cls, detail: str, *, attempts: int = 1) -> FetchError:
        """Return an error for connection-level failures."""
        return cls(
            f"Registry request failed after {attempts} attempt(s): {detail}",
            attempts=attempts,
        )

    @classmethod
    def invalid_payload(cls, detail: str) -> FetchError:
        """Return an error for a response body that is not a catalogue page."""
        return cls(f"Registry returned an unreadable page: {detail}")
