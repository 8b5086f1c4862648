"""Exceptions raised by the transfer engine."""

from typing import Optional


class TransferError(Exception):
    """Base class for every failure surfaced by an upload or download job."""
    pass


class InputError(TransferError):
    """Missing or invalid request payload. Never retried."""
    pass


class StoreFailure(TransferError):
    """A piece or the manifest could not be persisted to the blob store.

    ``index`` is the failing piece index, or ``None`` when the manifest itself failed.
    """

    def __init__(self, index: Optional[int], cause: Optional[BaseException] = None):
        self.index = index
        what = "manifest" if index is None else f"piece {index}"
        message = f"Failed to store {what}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class FetchFailure(TransferError):
    """A piece or manifest could not be retrieved from the blob store."""

    def __init__(self, handle: str, cause: Optional[BaseException] = None):
        self.handle = handle
        message = f"Failed to fetch blob {handle}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class FormatError(TransferError):
    """Manifest content did not parse."""
    pass
