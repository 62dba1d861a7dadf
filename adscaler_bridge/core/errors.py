"""Error taxonomy shared by the provider clients and orchestrators."""


class BridgeError(Exception):
    """Base class for all bridge errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self):
        return self.message


class ConfigurationError(BridgeError):
    """A required credential or endpoint is missing. Raised before any I/O."""


class RequestError(BridgeError):
    """An outbound provider request did not produce a usable response."""

    def __init__(
        self,
        message: str,
        url: str,
        status: int | None = None,
        data: dict | None = None,
    ):
        self.url = url
        self.status = status
        self.data = data
        super().__init__(message)


class ProviderError(RequestError):
    """Non-2xx response (or malformed body) from a provider."""


class NetworkError(RequestError):
    """Transport-level failure: DNS, timeout, connection reset."""


class GenerationFailedError(BridgeError):
    """A polled job reached its FAILED terminal state."""

    def __init__(self, message: str, detail: str | None = None):
        self.detail = detail
        super().__init__(message)


class PollTimeoutError(BridgeError, TimeoutError):
    """A bounded poll ran out of attempts before a terminal state.

    Also a builtin TimeoutError, so `except TimeoutError` catches it.
    """

    def __init__(self, message: str, attempts: int):
        self.attempts = attempts
        super().__init__(message)


class NoImageError(BridgeError):
    """The provider reported success but returned no images."""


class PollCancelledError(BridgeError):
    """Polling was stopped through a CancelToken."""


class NotFoundError(BridgeError):
    """The provider has no record with the requested id."""
