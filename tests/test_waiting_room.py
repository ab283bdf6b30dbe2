from __future__ import annotations

import datetime as dt

import pytest

from dental_clinic.errors import InvalidTransitionError
from dental_clinic.models import Appointment, AppointmentStatus, Patient
from dental_clinic.waiting_room import build_queue, check_transition, ordering_key


def make_appointment(id, time, urgent=False, status=AppointmentStatus.SCHEDULED, day=dt.date(2025, 3, 14), patient_id=1):
    return Appointment(
        id=id,
        patient_id=patient_id,
        date=day,
        time=time,
        duration=30,
        status=status,
        is_urgent=urgent,
        is_passenger=False,
    )


PATIENTS = [Patient(id=1, first_name="Claire", last_name="Martin", cin="AB1", date_of_birth=dt.date(1985, 4, 12))]


def test_urgent_first_then_by_time(today):
    appointments = [
        make_appointment(1, dt.time(9, 0)),
        make_appointment(2, dt.time(10, 0), urgent=True),
        make_appointment(3, dt.time(8, 0)),
    ]

    room = build_queue(appointments, PATIENTS, today)

    assert [(e.is_urgent, e.time) for e in room.waiting] == [
        (True, dt.time(10, 0)),
        (False, dt.time(8, 0)),
        (False, dt.time(9, 0)),
    ]


def test_ordering_key_breaks_ties_by_id():
    a = make_appointment(5, dt.time(9, 0))
    b = make_appointment(4, dt.time(9, 0))
    assert sorted([a, b], key=ordering_key) == [b, a]


def test_status_partition(today):
    appointments = [
        make_appointment(1, dt.time(9, 0), status=AppointmentStatus.SCHEDULED),
        make_appointment(2, dt.time(9, 30), status=AppointmentStatus.IN_PROGRESS),
        make_appointment(3, dt.time(8, 0), status=AppointmentStatus.COMPLETED, urgent=True),
    ]

    room = build_queue(appointments, PATIENTS, today)

    assert [e.appointment_id for e in room.waiting] == [1]
    assert [e.appointment_id for e in room.in_consultation] == [2]
    listed = {e.appointment_id for e in room.waiting + room.in_consultation}
    assert 3 not in listed


def test_only_appointments_of_the_day(today):
    appointments = [
        make_appointment(1, dt.time(9, 0)),
        make_appointment(2, dt.time(9, 0), day=today + dt.timedelta(days=1)),
        make_appointment(3, dt.time(9, 0), day=today - dt.timedelta(days=1)),
    ]

    room = build_queue(appointments, PATIENTS, today)

    assert room.day == today
    assert [e.appointment_id for e in room.waiting] == [1]


def test_entries_carry_patient_name(today):
    room = build_queue([make_appointment(1, dt.time(9, 0))], PATIENTS, today)
    assert room.waiting[0].patient_name == "Claire Martin"


def test_unknown_patient_has_empty_name(today):
    room = build_queue([make_appointment(1, dt.time(9, 0), patient_id=42)], PATIENTS, today)
    assert room.waiting[0].patient_name == ""


@pytest.mark.parametrize(
    "current, target",
    [
        (AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS),
        (AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED),
        (AppointmentStatus.COMPLETED, AppointmentStatus.COMPLETED),
    ],
)
def test_allowed_transitions(current, target):
    check_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED),
        (AppointmentStatus.IN_PROGRESS, AppointmentStatus.SCHEDULED),
        (AppointmentStatus.COMPLETED, AppointmentStatus.IN_PROGRESS),
    ],
)
def test_refused_transitions(current, target):
    with pytest.raises(InvalidTransitionError):
        check_transition(current, target)
