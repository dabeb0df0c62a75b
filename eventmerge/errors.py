class EventMergeError(Exception):
    """Base class for errors raised outside the pure matching/scoring core."""


class ConfigError(EventMergeError):
    pass


class FeedError(EventMergeError):
    """A candidate feed could not be read or contained a malformed record."""
