from __future__ import annotations


class HubError(Exception):
    """Base class for failures the UI reports as a transient notice."""


class StorageWriteError(HubError):
    def __init__(self, message: str, original: BaseException | None = None):
        super().__init__(message)
        self.original = original


class ImportValidationError(HubError):
    pass


class GateLockedError(HubError):
    pass


class PinRejectedError(HubError):
    pass
