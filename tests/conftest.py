from __future__ import annotations

import datetime as dt

import pytest
from fastapi.testclient import TestClient

from dental_clinic.api_main import create_app
from dental_clinic.storage import ClinicStore

# Jour fixe pour la salle d'attente
TODAY = dt.date(2025, 3, 14)


@pytest.fixture
def today() -> dt.date:
    return TODAY


@pytest.fixture
def store():
    s = ClinicStore()
    yield s
    s.dispose()


@pytest.fixture
def app(store):
    return create_app(store=store, seed_demo=False)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def patient(store):
    return store.patients.create(
        {
            "first_name": "Claire",
            "last_name": "Martin",
            "cin": "AB123456",
            "date_of_birth": dt.date(1985, 4, 12),
            "phone": "0601020304",
            "medical_history": ["allergie pénicilline"],
        }
    )


@pytest.fixture
def patient_payload() -> dict:
    return {
        "firstName": "Karim",
        "lastName": "Benali",
        "cin": " CD654321 ",
        "dateOfBirth": "1972-11-03",
        "phone": "0611223344",
    }
