"""
Clock gate: decides whether the current rotation epoch has expired.

The gate never samples the clock itself; every evaluation is handed ``now``
by its caller, which keeps it deterministic under test and across hosts.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from ..exceptions import InvalidIntervalError
from ..schemas.rotation_schemas import Epoch
from ..utils.interval_utils import IntervalLike, parse_interval
from ..utils.logger import get_logger

__all__ = ["ClockGate", "evaluate_epoch", "parse_interval"]


def _ensure_positive(interval: timedelta) -> timedelta:
    if interval <= timedelta(0):
        raise InvalidIntervalError(
            f"Rotation interval must be strictly positive, got {interval}",
            interval_seconds=interval.total_seconds(),
        )
    return interval


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def evaluate_epoch(now: datetime, last_epoch: Optional[Epoch], interval: timedelta) -> Epoch:
    """
    Return the epoch in force at ``now``.

    The same ``last_epoch`` object is returned while it is younger than
    ``interval``; otherwise a new epoch with the next id begins at ``now``.
    A ``now`` earlier than the last epoch (clock drift) keeps the last epoch.

    Raises:
        InvalidIntervalError: If interval is zero or negative
    """
    _ensure_positive(interval)
    now = _as_utc(now)

    if last_epoch is None:
        return Epoch(id=1, created_at=now)

    if now - last_epoch.created_at < interval:
        return last_epoch

    return Epoch(id=last_epoch.id + 1, created_at=now)


class ClockGate:
    """Stateful wrapper around evaluate_epoch that remembers the last epoch."""

    def __init__(self, interval: IntervalLike, last_epoch: Optional[Epoch] = None):
        self.interval = _ensure_positive(parse_interval(interval))
        self.last_epoch = last_epoch
        self.advanced = False
        self.logger = get_logger()

    def evaluate(self, now: datetime) -> Epoch:
        """Evaluate at ``now`` and keep the result as ``last_epoch``."""
        previous = self.last_epoch
        epoch = evaluate_epoch(now, previous, self.interval)
        self.advanced = epoch is not previous
        self.last_epoch = epoch

        if self.advanced:
            self.logger.info(
                "Rotation epoch advanced",
                extra={
                    "epoch_id": epoch.id,
                    "previous_epoch_id": previous.id if previous else None,
                    "interval_seconds": self.interval.total_seconds(),
                },
            )
        return epoch
