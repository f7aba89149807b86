"""Typed exception hierarchy for provider errors.

Provides structured exceptions for differentiated error handling
(auth errors vs transient network errors vs data issues).

Only ``ProviderAuthError`` is terminal for a Connection. Transient errors
are left to the surrounding job scheduler to retry; the engine never
retries internally.
"""


class ProviderError(Exception):
    """Base exception for all provider-related errors.

    Carries the provider name so callers can identify which provider failed.
    """

    retriable = False

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Credentials missing, expired, or invalid (HTTP 401/403)."""

    pass


class TransientProviderError(ProviderError):
    """Failures expected to clear on a later attempt."""

    retriable = True


class ProviderConnectionError(TransientProviderError):
    """Network failures: timeouts, DNS resolution, refused connections.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class ProviderRateLimitError(TransientProviderError):
    """HTTP 429 from the provider."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after
        self.status_code = 429
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the provider API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the provider."""

    pass


def public_error_message(error: BaseException, context: str | None = None) -> str:
    """Text that may be shown to users for ``error``.

    Provider errors carry messages we composed ourselves and are kept.
    Anything else is reduced to a generic message; the details belong in
    the ``exc_info`` log.
    """
    if isinstance(error, ProviderError):
        return str(error) or error.__class__.__name__
    if context:
        return f"Unexpected error during {context}"
    return "Unexpected error"
