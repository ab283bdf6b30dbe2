from __future__ import annotations

import datetime as dt

import pytest

from dental_clinic.billing import (
    DEFAULT_TOTAL,
    compute_total,
    document_fields,
    document_prefix,
    format_amount,
    next_document_number,
    payment_status_for,
    wordify,
)
from dental_clinic.models import ClinicSettings, DocumentType, Patient, PaymentStatus


@pytest.mark.parametrize(
    "n, expected",
    [
        (0, "Zéro euros"),
        (21, "Vingt-et-un euros"),
        (80, "Quatre-vingts euros"),
        (71, "Soixante-et-onze euros"),
        (90, "Quatre-vingt-dix euros"),
    ],
)
def test_wordify_reference_values(n, expected):
    assert wordify(n) == expected


@pytest.mark.parametrize(
    "n, expected",
    [
        (1, "Un euros"),
        (17, "Dix-sept euros"),
        (81, "Quatre-vingt-un euros"),
        (91, "Quatre-vingt-onze euros"),
        (99, "Quatre-vingt-dix-neuf euros"),
        (100, "Cent euros"),
        (200, "Deux cents euros"),
        (250, "Deux cent cinquante euros"),
        (1000, "Mille euros"),
        (1980, "Mille neuf cent quatre-vingts euros"),
        (80_000, "Quatre-vingt mille euros"),
        (2_000_000, "Deux millions euros"),
    ],
)
def test_wordify_french_rules(n, expected):
    assert wordify(n) == expected


def test_wordify_rejects_negative():
    with pytest.raises(ValueError):
        wordify(-1)


def test_wordify_suffix_ignores_configured_currency():
    # Le suffixe reste "euros" même pour un cabinet en dirhams (comportement connu, à trancher)
    settings = ClinicSettings(
        id=1,
        currency="MAD",
        currency_symbol="DH",
        document_prefix={"invoice": "FAC"},
        company_info={},
    )
    patient = Patient(first_name="Claire", last_name="Martin", cin="AB1", date_of_birth=dt.date(1985, 4, 12))
    fields = document_fields(patient, DocumentType.FACTURE, "FAC-2025-001", dt.datetime(2025, 3, 14), [], 300, settings)

    assert fields["amount_in_figures"] == "300,00 DH"
    assert fields["amount_in_words"].endswith(" euros")


def test_total_of_empty_selection_is_flat_fee():
    assert compute_total([]) == DEFAULT_TOTAL == 100


def test_total_sums_costs():
    assert compute_total([1200, 300, 0]) == 1500
    assert compute_total([0]) == 0


def test_format_amount():
    assert format_amount(1500, "€") == "1500,00 €"


def test_document_prefix_falls_back_to_default():
    assert document_prefix(DocumentType.FACTURE, {"invoice": "INV"}) == "INV"
    assert document_prefix(DocumentType.DEVIS, {}) == "DEV"
    assert document_prefix(DocumentType.NOTE_HONORAIRE, {"fee_note": ""}) == "NH"


def test_next_document_number_per_prefix_and_year():
    existing = ["FAC-2025-001", "FAC-2025-007", "FAC-2024-010", "DEV-2025-020", "n/a"]
    assert next_document_number("FAC", 2025, existing) == "FAC-2025-008"
    assert next_document_number("FAC", 2026, existing) == "FAC-2026-001"
    assert next_document_number("NH", 2025, []) == "NH-2025-001"


@pytest.mark.parametrize(
    "paid, cost, expected",
    [
        (0, 100, PaymentStatus.PENDING),
        (40, 100, PaymentStatus.PARTIAL),
        (100, 100, PaymentStatus.COMPLETED),
        (120, 100, PaymentStatus.COMPLETED),
    ],
)
def test_payment_status_for(paid, cost, expected):
    assert payment_status_for(paid, cost) == expected


def test_document_fields():
    settings = ClinicSettings(
        id=1,
        currency="EUR",
        currency_symbol="€",
        document_prefix={},
        company_info={"name": "Cabinet Sourire", "address": "1 rue des Lilas", "phone": "0102", "email": "c@s.fr"},
    )
    patient = Patient(first_name="Karim", last_name="Benali", cin="CD654321", date_of_birth=dt.date(1972, 11, 3))
    items = [
        {"treatment_id": 1, "description": "Détartrage", "cost": 60},
        {"treatment_id": 2, "description": "Couronne", "cost": 11},
    ]

    fields = document_fields(
        patient, DocumentType.DEVIS, "DEV-2025-003", dt.datetime(2025, 3, 14, 10, 0), items, 71, settings, "À régler"
    )

    assert fields["document_title"] == "Devis"
    assert fields["document_number"] == "DEV-2025-003"
    assert fields["patient_name"] == "Karim Benali"
    assert fields["patient_cin"] == "CD654321"
    assert fields["date"] == "14/03/2025"
    assert fields["treatment_description"] == "Détartrage, Couronne"
    assert fields["total_amount"] == "71"
    assert fields["amount_in_figures"] == "71,00 €"
    assert fields["currency_symbol"] == "€"
    assert fields["amount_in_words"] == "Soixante-et-onze euros"
    assert fields["company_name"] == "Cabinet Sourire"
    assert fields["notes"] == "À régler"
    assert all(isinstance(v, str) for v in fields.values())
