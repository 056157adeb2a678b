"""Engine limits.

Limits is the single configuration record for a Store, frozen after creation.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Limits:
    """Safety ceilings shared by every component of a Store.

    Attributes:
        max_depth: Deepest path (in segments) accepted, and the recursion
            ceiling used when sanitizing values.
        max_subscribers: Total subscribers across all paths.
        max_updates_per_cycle: Notification passes allowed in one burst
            before the storm breaker trips.

    """

    max_depth: int = 50
    max_subscribers: int = 1000
    max_updates_per_cycle: int = 100

    def __post_init__(self) -> None:
        for name in ("max_depth", "max_subscribers", "max_updates_per_cycle"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
