from __future__ import annotations

import datetime as dt
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from sqlalchemy import func, select

from .billing import (
    DEFAULT_DESCRIPTION,
    compute_total,
    document_fields,
    document_items,
    document_prefix,
    next_document_number,
    payment_status_for,
)
from .documents import render, treatment_rows
from .errors import (
    ClinicError,
    DocumentRenderError,
    InvalidTransitionError,
    MissingReferenceError,
    NotFoundError,
    StockError,
)
from .models import (
    Appointment,
    AppointmentStatus,
    Document,
    DocumentStatus,
    DocumentType,
    Medication,
    MovementType,
    Patient,
    Payment,
    StockMovement,
    Treatment,
)
from .storage import ClinicStore
from .waiting_room import WaitingRoom, build_queue, check_transition

logger = logging.getLogger(__name__)


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class RenderedDocument:
    document: Document
    html: str


def _unique(ids: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    return [i for i in ids if not (i in seen or seen.add(i))]


# =========================
# Salle d'attente
# =========================
def waiting_room(store: ClinicStore, day: dt.date) -> WaitingRoom:
    with store.session() as s:
        appointments = list(s.scalars(select(Appointment).where(Appointment.date == day)))
        patient_ids = sorted({a.patient_id for a in appointments})
        patients = list(s.scalars(select(Patient).where(Patient.id.in_(patient_ids))))
    return build_queue(appointments, patients, day)


def change_appointment_status(store: ClinicStore, appointment_id: int, target: AppointmentStatus) -> Appointment:
    with store.session() as s:
        appointment = s.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFoundError("Rendez-vous", appointment_id)

        check_transition(appointment.status, target)
        previous = appointment.status
        appointment.status = target
        s.flush()

    logger.info("Rendez-vous %s: %s -> %s", appointment_id, previous.value, target.value)
    return appointment


def call_patient(store: ClinicStore, appointment_id: int) -> Appointment:
    """Appel du patient: scheduled -> in_progress."""
    return change_appointment_status(store, appointment_id, AppointmentStatus.IN_PROGRESS)


def finish_consultation(store: ClinicStore, appointment_id: int) -> Appointment:
    """Fin de consultation: in_progress -> completed."""
    return change_appointment_status(store, appointment_id, AppointmentStatus.COMPLETED)


def update_appointment(store: ClinicStore, appointment_id: int, changes: Mapping[str, Any]) -> Appointment:
    """PATCH d'un rendez-vous; un changement de statut suit les mêmes transitions."""
    with store.session() as s:
        appointment = s.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFoundError("Rendez-vous", appointment_id)

        if changes.get("status") is not None:
            check_transition(appointment.status, changes["status"])
        store.appointments.check_references(s, changes)

        for field, value in changes.items():
            setattr(appointment, field, value)
        s.flush()
        return appointment


# =========================
# Documents (facture, devis, note d'honoraires)
# =========================
def create_document(
    store: ClinicStore,
    patient_id: int,
    doc_type: DocumentType,
    treatment_ids: Iterable[int],
    templates_dir: Path,
    issued: dt.datetime | None = None,
    notes: str | None = None,
    status: DocumentStatus = DocumentStatus.DRAFT,
) -> RenderedDocument:
    """
    Use case: générer un document de facturation.
    - total = somme des soins sélectionnés (forfait si aucun)
    - numéro PREFIX-AAAA-NNN selon les paramètres
    - rendu HTML AVANT l'enregistrement: si le rendu échoue, rien n'est enregistré
    """
    settings = store.get_settings()
    issued = issued or dt.datetime.now()

    with store.session() as s:
        patient = s.get(Patient, patient_id)
        if patient is None:
            raise NotFoundError("Patient", patient_id)

        treatments: list[Treatment] = []
        for tid in _unique(treatment_ids):
            t = s.get(Treatment, tid)
            if t is None:
                raise NotFoundError("Traitement", tid)
            if t.patient_id != patient_id:
                raise ClinicError(f"Le traitement {tid} n'appartient pas au patient {patient_id}.")
            treatments.append(t)

        items = document_items(treatments)
        total = compute_total(t.cost for t in treatments)

        prefix = document_prefix(doc_type, settings.document_prefix or {})
        existing = s.scalars(select(Document.number).where(Document.number.like(f"{prefix}-{issued.year}-%")))
        number = next_document_number(prefix, issued.year, existing)

        fields = document_fields(patient, doc_type, number, issued, items, total, settings, notes)
        rows = items or [{"treatment_id": 0, "description": DEFAULT_DESCRIPTION, "cost": total}]

        try:
            html_out = render(
                doc_type.value,
                {**fields, "treatment_rows": treatment_rows(rows, settings.currency_symbol)},
                templates_dir,
            )
        except DocumentRenderError as e:
            logger.warning("Rendu du document %s impossible: %s", number, e)
            raise

        document = Document(
            patient_id=patient_id,
            type=doc_type,
            number=number,
            data=fields,
            items=items,
            total=total,
            date=issued,
            notes=notes,
            status=status,
        )
        s.add(document)
        s.flush()

        # un devis ne facture rien: seuls facture et note d'honoraires sont liées aux soins
        if doc_type != DocumentType.DEVIS:
            for t in treatments:
                t.document_id = document.id
            s.flush()

    logger.info("Document %s créé (patient %s, total %s)", number, patient_id, total)
    return RenderedDocument(document=document, html=html_out)


def render_document(store: ClinicStore, document_id: int, templates_dir: Path) -> str:
    """Ré-impression d'un document enregistré, à partir de ses champs figés."""
    document = store.documents.get(document_id)

    # symbole figé à l'émission, pas celui des paramètres courants
    rows = document.items or [{"treatment_id": 0, "description": DEFAULT_DESCRIPTION, "cost": document.total}]
    fields = {**document.data, "treatment_rows": treatment_rows(rows, document.data["currency_symbol"])}
    return render(document.type.value, fields, templates_dir)


def set_document_status(store: ClinicStore, document_id: int, status: DocumentStatus) -> Document:
    """Seul le statut d'un document est modifiable; un document final le reste."""
    document = store.documents.get(document_id)
    if document.status == DocumentStatus.FINAL and status != DocumentStatus.FINAL:
        raise InvalidTransitionError(document.status.value, status.value)
    return store.documents.update(document_id, {"status": status})


# =========================
# Paiements
# =========================
def refresh_treatment_balance(store: ClinicStore, treatment_id: int) -> Treatment | None:
    """Recalcule paidAmount / paymentStatus d'un traitement à partir de ses paiements."""
    with store.session() as s:
        treatment = s.get(Treatment, treatment_id)
        if treatment is None:
            return None

        paid = s.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.treatment_id == treatment_id)
        )
        treatment.paid_amount = int(paid)
        treatment.payment_status = payment_status_for(treatment.paid_amount, treatment.cost)
        s.flush()
        return treatment


def update_treatment(store: ClinicStore, treatment_id: int, changes: Mapping[str, Any]) -> Treatment:
    """PATCH d'un traitement; un nouveau coût recalcule le statut de paiement."""
    treatment = store.treatments.update(treatment_id, changes)
    if "cost" in changes:
        treatment = refresh_treatment_balance(store, treatment_id) or treatment
    return treatment


def record_payment(store: ClinicStore, data: Mapping[str, Any]) -> Payment:
    treatment = store.treatments.find(data["treatment_id"])
    if treatment is not None and treatment.patient_id != data["patient_id"]:
        raise ClinicError(
            f"Le traitement {data['treatment_id']} n'appartient pas au patient {data['patient_id']}."
        )

    payment = store.payments.create(data)
    refresh_treatment_balance(store, payment.treatment_id)
    return payment


def update_payment(store: ClinicStore, payment_id: int, changes: Mapping[str, Any]) -> Payment:
    payment = store.payments.update(payment_id, changes)
    refresh_treatment_balance(store, payment.treatment_id)
    return payment


# =========================
# Stock des médicaments
# =========================
def move_stock(
    store: ClinicStore,
    medication_id: int,
    quantity: int,
    movement_type: MovementType,
    reason: str | None = None,
    treatment_id: int | None = None,
) -> StockMovement:
    """
    Entrée ou sortie de stock.
    - la quantité enregistrée est signée (négative pour une sortie)
    - le stock ne descend jamais sous zéro
    - une entrée met à jour la date de réapprovisionnement
    """
    with store.session() as s:
        medication = s.get(Medication, medication_id)
        if medication is None:
            raise NotFoundError("Médicament", medication_id)
        if treatment_id is not None and store.check_references and s.get(Treatment, treatment_id) is None:
            raise MissingReferenceError("treatment_id", treatment_id)

        delta = quantity if movement_type == MovementType.IN else -quantity
        if medication.current_stock + delta < 0:
            raise StockError(
                f"Stock insuffisant pour {medication.name}: "
                f"{medication.current_stock} {medication.unit} disponible(s)."
            )

        now = dt.datetime.now()
        medication.current_stock += delta
        if movement_type == MovementType.IN:
            medication.last_restock_date = now

        movement = StockMovement(
            medication_id=medication_id,
            quantity=delta,
            date=now,
            type=movement_type,
            reason=reason,
            treatment_id=treatment_id,
        )
        s.add(movement)
        s.flush()

        if medication.low_stock:
            logger.warning(
                "Stock bas: %s (%s %s, minimum %s)",
                medication.name, medication.current_stock, medication.unit, medication.minimum_stock,
            )
        return movement


def low_stock_medications(store: ClinicStore) -> list[Medication]:
    return [m for m in store.medications.list() if m.low_stock]


# =========================
# Statistiques
# =========================
def financial_stats(store: ClinicStore, top: int = 5) -> list[dict[str, Any]]:
    """
    Statistiques mensuelles, du mois le plus récent au plus ancien:
    - recettes = somme des paiements du mois
    - nombre de traitements, de patients traités, soins les plus fréquents
    """
    revenue: dict[str, int] = defaultdict(int)
    treatment_count: dict[str, int] = defaultdict(int)
    patients: dict[str, set[int]] = defaultdict(set)
    types: dict[str, Counter[str]] = defaultdict(Counter)

    for p in store.payments.list():
        revenue[p.date.strftime("%Y-%m")] += p.amount

    for t in store.treatments.list():
        month = t.date.strftime("%Y-%m")
        treatment_count[month] += 1
        patients[month].add(t.patient_id)
        types[month][t.type] += 1

    months = sorted(set(revenue) | set(treatment_count), reverse=True)
    return [
        {
            "month": month,
            "total_revenue": revenue[month],
            "treatment_count": treatment_count[month],
            "patient_count": len(patients[month]),
            "common_treatments": [
                {"name": name, "count": count} for name, count in types[month].most_common(top)
            ],
        }
        for month in months
    ]
