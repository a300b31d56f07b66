"""
Exceptions Module
Error taxonomy shared by the Dockmaster client, the persistence gateway and the sync engine.
"""


class DockmasterSyncError(Exception):
    """Base class for all sync errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(DockmasterSyncError):
    """Required configuration (e.g. Dockmaster credentials) is missing."""


class AuthenticationError(DockmasterSyncError):
    """Credentials were rejected or the auth response was malformed."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class UpstreamError(DockmasterSyncError):
    """A Dockmaster data endpoint returned a non-success status or could not be reached."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class PersistenceError(DockmasterSyncError):
    """An upsert, delete, insert or update against the local store failed."""
