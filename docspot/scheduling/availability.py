"""Free-slot lookups for a doctor's day and month."""

from collections import defaultdict
from datetime import date

from sqlalchemy.orm import Session

from docspot.models.appointment import Appointment, DAY_VIEW_STATUSES, LIVE_STATUSES
from docspot.models.doctor import Doctor
from docspot.scheduling.clock import day_bounds, iterate_days, month_bounds
from docspot.scheduling.errors import DoctorNotFoundError
from docspot.scheduling.slot_grid import daily_slots


def get_doctor_or_404(db: Session, doctor_id: int) -> Doctor:
    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        raise DoctorNotFoundError()
    return doctor


def get_held_slots(
    db: Session,
    doctor_id: int,
    start: date,
    end: date,
    statuses: tuple[str, ...] = LIVE_STATUSES,
) -> dict[date, set[str]]:
    """Slots taken by the doctor's appointments in ``[start, end)``, keyed by day.

    Only appointments whose status is in ``statuses`` count as taking a slot.
    """
    rows = db.query(Appointment.date, Appointment.slot).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date >= start,
        Appointment.date < end,
        Appointment.status.in_(statuses),
    ).all()

    held: dict[date, set[str]] = defaultdict(set)
    for appointment_date, slot in rows:
        held[appointment_date].add(slot)

    return held


def slots_for_day(db: Session, doctor_id: int, day: date) -> list[str]:
    doctor = get_doctor_or_404(db, doctor_id)
    start, end = day_bounds(day)
    held = get_held_slots(db, doctor_id, start, end, DAY_VIEW_STATUSES)[day]

    return [slot for slot in daily_slots(doctor) if slot not in held]


def availability_for_month(db: Session, doctor_id: int, year: int, month: int) -> dict[date, int]:
    """Count the bookable slots of every day in a one-based ``month``.

    A day's count is the grid size minus the live appointments sitting on
    grid slots that day. Past days are included; hiding them is up to the
    caller.
    """
    doctor = get_doctor_or_404(db, doctor_id)
    start, end = month_bounds(year, month)
    grid = daily_slots(doctor)
    held_by_day = get_held_slots(db, doctor_id, start, end)

    availability: dict[date, int] = {}
    for day in iterate_days(start, end):
        held = held_by_day.get(day, set())
        availability[day] = sum(1 for slot in grid if slot not in held)

    return availability
