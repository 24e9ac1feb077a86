"""Error hierarchy shared by the fetcher, notifier, state file and worker."""

from __future__ import annotations


class CutterBotError(Exception):
    """Base class for all application-level errors."""


class FetchError(CutterBotError):
    """The schedule could not be fetched or parsed."""


class FetchNetworkError(FetchError):
    pass


class UnexpectedFormatError(FetchError):
    """The schedule response does not look like what we know how to parse.

    Usually means the remote API changed its wire format.
    """


class HttpStatusError(FetchError):
    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(message or f"Schedule API returned HTTP {status_code}")


class NotifyError(CutterBotError):
    """A notification could not be delivered."""


class NotifyNetworkError(NotifyError):
    pass


class RejectedByServiceError(NotifyError):
    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(message or f"Messaging API rejected the message (HTTP {status_code})")


class StoreError(CutterBotError):
    """The persisted availability state could not be read or written."""


class StoreIOError(StoreError):
    pass


class CorruptStateError(StoreError):
    pass


class ConfigError(CutterBotError):
    """Invalid startup configuration. Fatal before any run starts."""


class MissingCredentialError(ConfigError):
    pass
