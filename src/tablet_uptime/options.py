from dataclasses import dataclass

@dataclass
class Options:
    """Parameters shared by every uptime computation."""

    # IANA zone used for every local date and hour
    timezone: str = "America/Los_Angeles"
    # Minutes after the last heartbeat during which a bucket still counts as online
    grace_minutes: int = 3
    # Upper bound on buckets in a single window
    max_buckets: int = 100_000
    # Bucket width (minutes) used for week and month views
    calendar_interval: int = 15
    # Bucket width (minutes) used when a request does not name one
    default_interval: int = 5
