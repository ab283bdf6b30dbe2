from __future__ import annotations

import datetime as dt
import re
from typing import Any, Iterable, Mapping, Sequence

from .models import ClinicSettings, DocumentType, Patient, PaymentStatus, Treatment

# Montant forfaitaire quand aucun soin n'est sélectionné
DEFAULT_TOTAL = 100
DEFAULT_DESCRIPTION = "Consultation dentaire"

DOCUMENT_TITLES = {
    DocumentType.FACTURE: "Facture",
    DocumentType.DEVIS: "Devis",
    DocumentType.NOTE_HONORAIRE: "Note d'honoraires",
}

# type de document -> clé de settings.document_prefix
PREFIX_KEYS = {
    DocumentType.FACTURE: ("invoice", "FAC"),
    DocumentType.DEVIS: ("quote", "DEV"),
    DocumentType.NOTE_HONORAIRE: ("fee_note", "NH"),
}

UNITS = [
    "", "un", "deux", "trois", "quatre", "cinq", "six", "sept", "huit", "neuf",
    "dix", "onze", "douze", "treize", "quatorze", "quinze", "seize", "dix-sept", "dix-huit", "dix-neuf",
]
TENS = [
    "", "", "vingt", "trente", "quarante", "cinquante", "soixante",
    "soixante-dix", "quatre-vingt", "quatre-vingt-dix",
]


# =========================
# Montant en lettres
# =========================
def _below_hundred(n: int, final: bool) -> str:
    if n < 20:
        return UNITS[n]

    ten, unit = divmod(n, 10)

    # 70-79 et 90-99: base soixante / quatre-vingt + 10..19
    if ten in (7, 9):
        base = TENS[ten - 1]
        link = "-et-" if unit == 1 and ten == 7 else "-"
        return base + link + UNITS[10 + unit]

    word = TENS[ten]
    if unit == 0:
        # quatre-vingts prend un s seulement en fin de nombre
        return word + "s" if ten == 8 and final else word
    link = "-et-" if unit == 1 and ten != 8 else "-"
    return word + link + UNITS[unit]


def _words(n: int, final: bool = True) -> str:
    if n == 0:
        return "zéro"

    parts: list[str] = []

    if n >= 1_000_000:
        millions, n = divmod(n, 1_000_000)
        parts.append("un million" if millions == 1 else f"{_words(millions, final=False)} millions")

    if n >= 1000:
        thousands, n = divmod(n, 1000)
        parts.append("mille" if thousands == 1 else f"{_words(thousands, final=False)} mille")

    if n >= 100:
        hundreds, n = divmod(n, 100)
        if hundreds == 1:
            parts.append("cent")
        else:
            plural = "s" if n == 0 and final else ""
            parts.append(f"{UNITS[hundreds]} cent{plural}")

    if n > 0:
        parts.append(_below_hundred(n, final))

    return " ".join(parts)


def wordify(n: int) -> str:
    """
    Montant entier en toutes lettres (français), ex. 71 -> "Soixante-et-onze euros".

    Le suffixe est toujours "euros", quelle que soit la devise des paramètres.
    """
    if n < 0:
        raise ValueError("Le montant doit être positif ou nul.")
    words = _words(n)
    return words[0].upper() + words[1:] + " euros"


# =========================
# Totaux et mise en forme
# =========================
def compute_total(costs: Iterable[int]) -> int:
    """Somme des coûts sélectionnés; DEFAULT_TOTAL si la sélection est vide."""
    costs = list(costs)
    if not costs:
        return DEFAULT_TOTAL
    return sum(costs)


def payment_status_for(paid: int, cost: int) -> PaymentStatus:
    if paid <= 0:
        return PaymentStatus.PENDING
    if paid >= cost:
        return PaymentStatus.COMPLETED
    return PaymentStatus.PARTIAL


def format_amount(total: int, currency_symbol: str) -> str:
    return f"{total},00 {currency_symbol}"


def document_items(treatments: Sequence[Treatment]) -> list[dict[str, Any]]:
    return [{"treatment_id": t.id, "description": t.description, "cost": t.cost} for t in treatments]


# =========================
# Numérotation
# =========================
def document_prefix(doc_type: DocumentType, prefixes: Mapping[str, str]) -> str:
    key, fallback = PREFIX_KEYS[doc_type]
    return prefixes.get(key) or fallback


def next_document_number(prefix: str, year: int, existing: Iterable[str]) -> str:
    """PREFIX-AAAA-NNN, séquence par préfixe et par année."""
    pattern = re.compile(rf"^{re.escape(prefix)}-{year}-(\d+)$")
    last = 0
    for number in existing:
        m = pattern.match(number or "")
        if m:
            last = max(last, int(m.group(1)))
    return f"{prefix}-{year}-{last + 1:03d}"


# =========================
# Champs du modèle HTML
# =========================
def document_fields(
    patient: Patient,
    doc_type: DocumentType,
    number: str,
    issued: dt.datetime,
    items: Sequence[Mapping[str, Any]],
    total: int,
    settings: ClinicSettings,
    notes: str | None = None,
) -> dict[str, str]:
    """Champs texte injectés dans facture.html / devis.html / note_honoraire.html."""
    company = settings.company_info or {}
    description = ", ".join(str(item["description"]) for item in items) or DEFAULT_DESCRIPTION

    return {
        "document_title": DOCUMENT_TITLES[doc_type],
        "document_number": number,
        "patient_name": patient.full_name,
        "patient_cin": patient.cin,
        "date": issued.strftime("%d/%m/%Y"),
        "treatment_description": description,
        "total_amount": str(total),
        "amount_in_figures": format_amount(total, settings.currency_symbol),
        "amount_in_words": wordify(total),
        "currency": settings.currency,
        "currency_symbol": settings.currency_symbol,
        "company_name": company.get("name", ""),
        "company_address": company.get("address", ""),
        "company_phone": company.get("phone", ""),
        "company_email": company.get("email", ""),
        "notes": notes or "",
    }
