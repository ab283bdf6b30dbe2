from __future__ import annotations

import datetime as dt
import enum
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Enum, ForeignKey, Integer, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base

# Identifiants monotones, jamais réutilisés après suppression
AUTOINCREMENT = {"sqlite_autoincrement": True}


class AppointmentStatus(enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TreatmentStatus(enum.Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PaymentStatus(enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


class PaymentType(enum.Enum):
    ADVANCE = "advance"
    FULL = "full"
    INSTALLMENT = "installment"


class MovementType(enum.Enum):
    IN = "in"
    OUT = "out"


class DocumentType(enum.Enum):
    FACTURE = "facture"
    DEVIS = "devis"
    NOTE_HONORAIRE = "note_honoraire"


class DocumentStatus(enum.Enum):
    DRAFT = "draft"
    FINAL = "final"


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = AUTOINCREMENT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    cin: Mapped[str] = mapped_column(String(30), nullable=False)
    date_of_birth: Mapped[dt.date] = mapped_column(Date, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    medical_history: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"Patient({self.first_name} {self.last_name}, CIN {self.cin})"


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = AUTOINCREMENT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=30, nullable=False)  # minutes

    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus), default=AppointmentStatus.SCHEDULED, nullable=False
    )
    is_urgent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_passenger: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"Appointment(patient={self.patient_id}, {self.date} {self.time}, {self.status.value})"


class Treatment(Base):
    __tablename__ = "treatments"
    __table_args__ = AUTOINCREMENT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False)

    type: Mapped[str] = mapped_column(String(80), nullable=False)  # implant, prothèse, orthodontie...
    description: Mapped[str] = mapped_column(Text, nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.now, nullable=False)
    status: Mapped[TreatmentStatus] = mapped_column(
        Enum(TreatmentStatus), default=TreatmentStatus.COMPLETED, nullable=False
    )

    document_id: Mapped[int | None] = mapped_column(ForeignKey("documents.id"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # [{"medication_id": 1, "quantity": 2, "instructions": "..."}]
    medications: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    selected_teeth: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )
    paid_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = AUTOINCREMENT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False)
    treatment_id: Mapped[int] = mapped_column(ForeignKey("treatments.id"), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.now, nullable=False)
    type: Mapped[PaymentType] = mapped_column(Enum(PaymentType), nullable=False)

    document_id: Mapped[int | None] = mapped_column(ForeignKey("documents.id"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class Medication(Base):
    __tablename__ = "medications"
    __table_args__ = AUTOINCREMENT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    minimum_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)  # comprimé, ml, ...
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(120), nullable=True)
    last_restock_date: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def low_stock(self) -> bool:
        return self.current_stock <= self.minimum_stock


class StockMovement(Base):
    __tablename__ = "stock_movements"
    __table_args__ = AUTOINCREMENT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    medication_id: Mapped[int] = mapped_column(ForeignKey("medications.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # positif: entrée, négatif: sortie
    date: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.now, nullable=False)
    type: Mapped[MovementType] = mapped_column(Enum(MovementType), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(80), nullable=True)  # treatment, expired, restock
    treatment_id: Mapped[int | None] = mapped_column(ForeignKey("treatments.id"), nullable=True)


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = AUTOINCREMENT

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False)
    type: Mapped[DocumentType] = mapped_column(Enum(DocumentType), nullable=False)
    number: Mapped[str] = mapped_column(String(30), nullable=False)  # FAC-2025-001

    # Champs tels qu'injectés dans le modèle HTML
    data: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    # [{"treatment_id": 3, "description": "...", "cost": 1200}]
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)

    date: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.now, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), default=DocumentStatus.DRAFT, nullable=False
    )


class ClinicSettings(Base):
    """Paramètres du cabinet: une seule ligne (id=1)."""
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    currency: Mapped[str] = mapped_column(String(10), default="EUR", nullable=False)
    currency_symbol: Mapped[str] = mapped_column(String(10), default="€", nullable=False)
    document_prefix: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    company_info: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
