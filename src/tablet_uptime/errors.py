"""Errors raised by the uptime engine."""


class UptimeError(Exception):
    """Base class for uptime engine errors."""


class InvalidWindow(UptimeError, ValueError):
    """The requested window is empty, inverted or uses an unsupported interval."""


class WindowTooLarge(UptimeError):
    """The requested window would produce more buckets than allowed."""

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"Window needs {count} buckets; the limit is {limit}")
        self.count = count
        self.limit = limit


class MalformedHeartbeat(UptimeError, ValueError):
    """A heartbeat row could not be parsed."""
