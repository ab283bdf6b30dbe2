from __future__ import annotations

import datetime as dt
from concurrent.futures import ThreadPoolExecutor

import pytest

from dental_clinic.errors import MissingReferenceError, NotFoundError
from dental_clinic.models import (
    AppointmentStatus,
    DocumentStatus,
    DocumentType,
    MovementType,
    PaymentType,
)
from dental_clinic.storage import ClinicStore


def patient_data(**overrides):
    data = {
        "first_name": "Claire",
        "last_name": "Martin",
        "cin": "AB123456",
        "date_of_birth": dt.date(1985, 4, 12),
        "medical_history": [],
    }
    data.update(overrides)
    return data


def test_patient_round_trip(store):
    data = patient_data(phone="0601020304", medical_history=["diabète"])
    created = store.patients.create(data)

    fetched = store.patients.get(created.id)
    assert fetched.id == created.id
    for field, value in data.items():
        assert getattr(fetched, field) == value


def test_every_entity_round_trip(store, patient):
    medication = store.medications.create(
        {"name": "Amoxicilline", "current_stock": 10, "minimum_stock": 2, "unit": "boîte"}
    )
    treatment = store.treatments.create(
        {
            "patient_id": patient.id,
            "type": "soin",
            "description": "Détartrage",
            "cost": 60,
            "date": dt.datetime(2025, 3, 14, 9, 0),
            "medications": [{"medication_id": medication.id, "quantity": 1, "instructions": "2x/jour"}],
            "selected_teeth": [11, 21],
        }
    )
    appointment = store.appointments.create(
        {"patient_id": patient.id, "date": dt.date(2025, 3, 14), "time": dt.time(9, 0)}
    )
    payment = store.payments.create(
        {"patient_id": patient.id, "treatment_id": treatment.id, "amount": 30, "type": PaymentType.ADVANCE}
    )
    movement = store.stock_movements.create(
        {"medication_id": medication.id, "quantity": -1, "type": MovementType.OUT, "reason": "treatment"}
    )
    document = store.documents.create(
        {
            "patient_id": patient.id,
            "type": DocumentType.FACTURE,
            "number": "FAC-2025-001",
            "data": {"document_number": "FAC-2025-001"},
            "items": [],
            "total": 100,
        }
    )

    repos = [
        (store.patients, patient),
        (store.medications, medication),
        (store.treatments, treatment),
        (store.appointments, appointment),
        (store.payments, payment),
        (store.stock_movements, movement),
        (store.documents, document),
    ]
    for repo, obj in repos:
        assert repo.get(obj.id).id == obj.id

    # valeurs par défaut
    assert appointment.duration == 30
    assert appointment.status == AppointmentStatus.SCHEDULED
    assert document.status == DocumentStatus.DRAFT
    assert treatment.paid_amount == 0

    # suppression: les enregistrements liés ne sont pas supprimés en cascade
    for repo, obj in reversed(repos):
        repo.delete(obj.id)
        with pytest.raises(NotFoundError):
            repo.get(obj.id)


def test_update_applies_only_given_fields(store, patient):
    updated = store.patients.update(patient.id, {"phone": "0700000000"})
    assert updated.phone == "0700000000"
    assert updated.first_name == "Claire"
    assert store.patients.get(patient.id).phone == "0700000000"


def test_missing_ids(store):
    assert store.patients.find(99) is None
    with pytest.raises(NotFoundError):
        store.patients.get(99)
    with pytest.raises(NotFoundError):
        store.patients.update(99, {"phone": "x"})
    with pytest.raises(NotFoundError):
        store.patients.delete(99)


def test_ids_are_not_reused_after_delete(store):
    first = store.patients.create(patient_data())
    second = store.patients.create(patient_data(cin="X2"))
    store.patients.delete(second.id)

    third = store.patients.create(patient_data(cin="X3"))
    assert third.id > second.id > first.id


def test_concurrent_creates_get_distinct_ids(store):
    def create(i):
        return store.patients.create(patient_data(cin=f"CIN{i}")).id

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(create, range(50)))

    assert len(set(ids)) == 50
    assert len(store.patients.list()) == 50


def test_list_filters_by_foreign_key(store, patient):
    other = store.patients.create(patient_data(first_name="Karim", cin="CD1"))
    for p in (patient, patient, other):
        store.treatments.create(
            {"patient_id": p.id, "type": "soin", "description": "Détartrage", "cost": 60}
        )

    assert len(store.treatments.list(patient_id=patient.id)) == 2
    assert len(store.treatments.list(patient_id=other.id)) == 1
    assert store.treatments.list(patient_id=12345) == []


def test_missing_reference_is_refused(store, patient):
    with pytest.raises(MissingReferenceError):
        store.appointments.create({"patient_id": 99, "date": dt.date(2025, 3, 14), "time": dt.time(9, 0)})

    with pytest.raises(MissingReferenceError):
        store.treatments.create(
            {
                "patient_id": patient.id,
                "type": "soin",
                "description": "x",
                "cost": 1,
                "medications": [{"medication_id": 99, "quantity": 1}],
            }
        )

    appointment = store.appointments.create(
        {"patient_id": patient.id, "date": dt.date(2025, 3, 14), "time": dt.time(9, 0)}
    )
    with pytest.raises(MissingReferenceError):
        store.appointments.update(appointment.id, {"patient_id": 99})

    assert store.treatments.list() == []
    assert store.appointments.get(appointment.id).patient_id == patient.id


def test_reference_checks_can_be_disabled():
    permissive = ClinicStore(check_references=False)
    try:
        appointment = permissive.appointments.create(
            {"patient_id": 99, "date": dt.date(2025, 3, 14), "time": dt.time(9, 0)}
        )
        assert appointment.patient_id == 99
    finally:
        permissive.dispose()


def test_settings_defaults_then_saved(store):
    settings = store.get_settings()
    assert settings.currency == "EUR"
    assert settings.document_prefix["invoice"] == "FAC"

    store.save_settings({"currency": "MAD", "currency_symbol": "DH"})
    saved = store.get_settings()
    assert saved.currency == "MAD"
    assert saved.currency_symbol == "DH"
    assert saved.document_prefix["quote"] == "DEV"
