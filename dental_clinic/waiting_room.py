from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .errors import InvalidTransitionError
from .models import Appointment, AppointmentStatus, Patient

# Seules transitions possibles: appel du patient, puis fin de consultation
TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: {AppointmentStatus.IN_PROGRESS},
    AppointmentStatus.IN_PROGRESS: {AppointmentStatus.COMPLETED},
    AppointmentStatus.COMPLETED: set(),
}


@dataclass(frozen=True)
class QueueEntry:
    appointment_id: int
    patient_id: int
    patient_name: str
    time: dt.time
    duration: int
    status: AppointmentStatus
    is_urgent: bool
    is_passenger: bool
    reason: str | None


@dataclass(frozen=True)
class WaitingRoom:
    day: dt.date
    waiting: list[QueueEntry] = field(default_factory=list)
    in_consultation: list[QueueEntry] = field(default_factory=list)


def ordering_key(appointment: Appointment) -> tuple[bool, dt.time, int]:
    """Urgences d'abord, puis heure croissante (id pour départager)."""
    return (not appointment.is_urgent, appointment.time, appointment.id)


def check_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if current == target:
        return
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


def _entry(a: Appointment, patients: Mapping[int, Patient]) -> QueueEntry:
    patient = patients.get(a.patient_id)
    return QueueEntry(
        appointment_id=a.id,
        patient_id=a.patient_id,
        patient_name=patient.full_name if patient else "",
        time=a.time,
        duration=a.duration,
        status=a.status,
        is_urgent=a.is_urgent,
        is_passenger=a.is_passenger,
        reason=a.reason,
    )


def build_queue(appointments: Iterable[Appointment], patients: Iterable[Patient], day: dt.date) -> WaitingRoom:
    """
    File d'attente du jour:
    - rendez-vous dont la date est `day`
    - "waiting" = scheduled, "in_consultation" = in_progress
    - les rendez-vous terminés n'apparaissent nulle part
    """
    by_id = {p.id: p for p in patients}
    todays = sorted((a for a in appointments if a.date == day), key=ordering_key)

    return WaitingRoom(
        day=day,
        waiting=[_entry(a, by_id) for a in todays if a.status == AppointmentStatus.SCHEDULED],
        in_consultation=[_entry(a, by_id) for a in todays if a.status == AppointmentStatus.IN_PROGRESS],
    )
