"""Daily slot grid offered by a doctor.

This module is the only place that knows which times of day are bookable.
Everything else asks :func:`daily_slots` for a doctor's grid.
"""

import logging
import re

from docspot.models.doctor import Doctor

logger = logging.getLogger(__name__)

STANDARD_SLOTS = (
    '09:00', '09:30', '10:00', '10:30', '11:00', '11:30', '12:00', '12:30',
    '14:00', '14:30', '15:00', '15:30', '16:00', '16:30', '17:00',
)

_SLOT_PATTERN = re.compile(r'([01]\d|2[0-3]):[0-5]\d')


def is_valid_slot(value: object) -> bool:
    return isinstance(value, str) and bool(_SLOT_PATTERN.fullmatch(value))


def slot_sort_key(slot: str) -> tuple[int, int]:
    hours, minutes = slot.split(':')
    return int(hours), int(minutes)


def _configured_slots(doctor: Doctor) -> list[str]:
    windows = doctor.available_time_slots or []
    if not isinstance(windows, list):
        logger.warning('Ignoring time windows of doctor %s: expected a list, got %r', doctor.id, windows)
        windows = []
    starts: set[str] = set()

    for window in windows:
        start = window.get('start') if isinstance(window, dict) else None
        if not is_valid_slot(start):
            logger.warning('Ignoring malformed time window %r for doctor %s', window, doctor.id)
            continue
        starts.add(start)

    return sorted(starts, key=slot_sort_key)


def daily_slots(doctor: Doctor) -> list[str]:
    """Return the ordered slots ``doctor`` offers on any calendar day.

    Doctors with configured time windows offer the start of each window;
    everyone else offers :data:`STANDARD_SLOTS`.
    """
    configured = _configured_slots(doctor)
    if configured:
        return configured
    return list(STANDARD_SLOTS)
