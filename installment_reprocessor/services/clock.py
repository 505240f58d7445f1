"""Virtual clock supplying "now" to the installment processor.

Responsibilities:
- Maintain virtual current time (frozen until explicitly moved)
- Advance time (days, hours, minutes)
- Jump to a specific instant or back to real time
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from installment_reprocessor.logging_config import get_logger
from installment_reprocessor.utils.durations import as_utc

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Current wall-clock time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class VirtualClock:
    """Virtual clock for deterministic scheduling.

    Time does not move on its own: repeated calls to now() return the same
    instant until advance(), set_time() or reset_time() is called.

    Args:
        start: initial virtual time, defaults to the real current time
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        # thread safety lock
        self._lock = threading.RLock()
        self._virtual_time = as_utc(start) if start else utc_now()
        self._offset = timedelta(0)

        logger.info(
            "virtual_clock_initialized",
            virtual_time=self._virtual_time.isoformat(),
        )

    def now(self) -> datetime:
        """Get the current virtual time."""
        with self._lock:
            return self._virtual_time

    @property
    def offset(self) -> timedelta:
        """Total amount the virtual clock has been moved away from its start."""
        with self._lock:
            return self._offset

    def advance(self, days: int = 0, hours: int = 0, minutes: int = 0) -> dict:
        """Advance virtual time.

        Args:
            days: number of days to advance
            hours: number of hours to advance
            minutes: number of minutes to advance

        Returns:
            Dictionary with old_time, new_time and time_advanced

        Raises:
            ValueError: if any value is negative
        """
        if days < 0 or hours < 0 or minutes < 0:
            raise ValueError("Cannot advance time backwards, negative values are not allowed")

        delta = timedelta(days=days, hours=hours, minutes=minutes)

        with self._lock:
            old_time = self._virtual_time
            self._virtual_time = old_time + delta
            self._offset += delta
            new_time = self._virtual_time

        if delta:
            logger.info(
                "time_advanced",
                old_time=old_time.isoformat(),
                new_time=new_time.isoformat(),
                days=days,
                hours=hours,
                minutes=minutes,
            )

        return {
            "old_time": old_time,
            "new_time": new_time,
            "time_advanced": delta,
        }

    def set_time(self, moment: datetime) -> dict:
        """Set virtual time to a specific instant.

        Raises:
            ValueError: If the instant is before the current virtual time
        """
        moment = as_utc(moment)
        with self._lock:
            old_time = self._virtual_time
            if moment < old_time:
                raise ValueError(
                    f"cannot set time backwards, current: {old_time.isoformat()}, "
                    f"requested: {moment.isoformat()}"
                )
            self._virtual_time = moment
            self._offset += moment - old_time

        logger.info("time_set", old_time=old_time.isoformat(), new_time=moment.isoformat())
        return {"old_time": old_time, "new_time": moment}

    def reset_time(self) -> dict:
        """Reset virtual time back to real current time."""
        with self._lock:
            old_time = self._virtual_time
            self._virtual_time = utc_now()
            self._offset = timedelta(0)
            new_time = self._virtual_time

        logger.info("time_reset", old_time=old_time.isoformat(), new_time=new_time.isoformat())
        return {"old_time": old_time, "new_time": new_time}


_clock_instance: Optional[VirtualClock] = None
_clock_lock = threading.Lock()


def get_clock() -> VirtualClock:
    global _clock_instance
    if _clock_instance is None:
        with _clock_lock:
            if _clock_instance is None:
                _clock_instance = VirtualClock()
    return _clock_instance


def reset_clock() -> None:
    global _clock_instance
    with _clock_lock:
        _clock_instance = VirtualClock()
