"""
Exceptions raised by the purge engine.
"""


class PurgeError(Exception):
    """Base class for purge errors.

    ``deleted`` carries how many messages were removed before the failure,
    so callers can still count partial work.
    """

    def __init__(self, message: str, deleted: int = 0):
        super().__init__(message)
        self.deleted = deleted


class AuthenticationError(PurgeError):
    """The token was rejected (HTTP 401)."""


class RateLimitExceeded(PurgeError):
    """Still rate limited after the retry budget was spent."""


class ContainerError(PurgeError):
    """Work on a single channel, DM or server had to be abandoned."""


class SearchIndexNotReady(ContainerError):
    """Search kept answering 202 / retry for too long."""


class SearchFailed(ContainerError):
    """Search returned a status we cannot work with."""


class HistoryFetchError(ContainerError):
    """A message history page could not be fetched."""


class DataPackageError(PurgeError):
    """The data package path could not be read or parsed."""
