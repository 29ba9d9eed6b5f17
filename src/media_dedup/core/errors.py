"""Exceptions raised by the duplicate resolution core."""


class DedupError(Exception):
    """Base class for media-dedup errors."""


class DataUnavailableError(DedupError):
    """The metadata source (or its hash index) cannot be reached."""


class InvalidConfirmError(DedupError):
    """A confirm was attempted without a valid keep/trash decision set."""
