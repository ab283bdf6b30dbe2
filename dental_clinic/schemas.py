from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, ClassVar

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .models import (
    AppointmentStatus,
    DocumentStatus,
    DocumentType,
    MovementType,
    PaymentStatus,
    PaymentType,
    TreatmentStatus,
)

# Schéma dentaire (numérotation FDI), adulte puis enfant
ADULT_TEETH = frozenset(
    [18, 17, 16, 15, 14, 13, 12, 11, 21, 22, 23, 24, 25, 26, 27, 28,
     48, 47, 46, 45, 44, 43, 42, 41, 31, 32, 33, 34, 35, 36, 37, 38]
)
CHILD_TEETH = frozenset(
    [55, 54, 53, 52, 51, 61, 62, 63, 64, 65,
     85, 84, 83, 82, 81, 71, 72, 73, 74, 75]
)


class CamelModel(BaseModel):
    """JSON en camelCase (firstName, isUrgent, ...), attributs Python en snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PatchModel(CamelModel):
    """
    Mise à jour partielle: seuls les champs envoyés sont appliqués.
    Un null explicite n'est accepté que pour les champs optionnels.
    """
    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> PatchModel:
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.nullable_fields:
                raise ValueError(f"{name} ne peut pas être null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# =========================
# Patients
# =========================
def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


# numéro de CIN, espaces retirés avant contrôle
Cin = Annotated[str, BeforeValidator(_strip)]


class PatientIn(CamelModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    cin: Cin = Field(..., min_length=1)
    date_of_birth: dt.date
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    medical_history: list[str] = Field(default_factory=list)


class PatientPatch(PatchModel):
    nullable_fields = frozenset({"phone", "email", "address"})

    first_name: str | None = Field(None, min_length=1)
    last_name: str | None = Field(None, min_length=1)
    cin: Cin | None = Field(None, min_length=1)
    date_of_birth: dt.date | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    medical_history: list[str] | None = None


class PatientOut(PatientIn):
    id: int


# =========================
# Rendez-vous
# =========================
class AppointmentIn(CamelModel):
    patient_id: int
    date: dt.date
    time: dt.time
    duration: int = Field(30, gt=0)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    is_urgent: bool = False
    is_passenger: bool = False
    reason: str | None = None
    notes: str | None = None


class AppointmentPatch(PatchModel):
    nullable_fields = frozenset({"reason", "notes"})

    patient_id: int | None = None
    date: dt.date | None = None
    time: dt.time | None = None
    duration: int | None = Field(None, gt=0)
    status: AppointmentStatus | None = None
    is_urgent: bool | None = None
    is_passenger: bool | None = None
    reason: str | None = None
    notes: str | None = None


class AppointmentOut(AppointmentIn):
    id: int


# =========================
# Traitements
# =========================
class PrescribedMedication(CamelModel):
    medication_id: int
    quantity: int = Field(..., gt=0)
    instructions: str = ""


def check_teeth(teeth: list[int]) -> list[int]:
    unknown = sorted(set(teeth) - ADULT_TEETH - CHILD_TEETH)
    if unknown:
        raise ValueError(f"Numéros de dents inconnus: {unknown}")
    return teeth


Teeth = Annotated[list[int], AfterValidator(check_teeth)]


class TreatmentIn(CamelModel):
    patient_id: int
    type: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    cost: int = Field(..., ge=0)
    date: dt.datetime = Field(default_factory=dt.datetime.now)
    status: TreatmentStatus = TreatmentStatus.COMPLETED
    document_id: int | None = None
    notes: str | None = None
    medications: list[PrescribedMedication] = Field(default_factory=list)
    selected_teeth: Teeth = Field(default_factory=list)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_amount: int = Field(0, ge=0)


class TreatmentPatch(PatchModel):
    nullable_fields = frozenset({"document_id", "notes"})

    patient_id: int | None = None
    type: str | None = Field(None, min_length=1)
    description: str | None = Field(None, min_length=1)
    cost: int | None = Field(None, ge=0)
    date: dt.datetime | None = None
    status: TreatmentStatus | None = None
    document_id: int | None = None
    notes: str | None = None
    medications: list[PrescribedMedication] | None = None
    selected_teeth: Teeth | None = None
    payment_status: PaymentStatus | None = None
    paid_amount: int | None = Field(None, ge=0)


class TreatmentOut(TreatmentIn):
    id: int


# =========================
# Paiements
# =========================
class PaymentIn(CamelModel):
    patient_id: int
    treatment_id: int
    amount: int = Field(..., gt=0)
    date: dt.datetime = Field(default_factory=dt.datetime.now)
    type: PaymentType
    document_id: int | None = None
    notes: str | None = None


class PaymentPatch(PatchModel):
    nullable_fields = frozenset({"document_id", "notes"})

    amount: int | None = Field(None, gt=0)
    date: dt.datetime | None = None
    type: PaymentType | None = None
    document_id: int | None = None
    notes: str | None = None


class PaymentOut(PaymentIn):
    id: int


# =========================
# Médicaments / stock
# =========================
class MedicationIn(CamelModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    current_stock: int = Field(..., ge=0)
    minimum_stock: int = Field(..., ge=0)
    unit: str = Field(..., min_length=1)
    price: int | None = Field(None, ge=0)
    supplier: str | None = None
    last_restock_date: dt.datetime | None = None


class MedicationPatch(PatchModel):
    nullable_fields = frozenset({"description", "price", "supplier", "last_restock_date"})

    name: str | None = Field(None, min_length=1)
    description: str | None = None
    current_stock: int | None = Field(None, ge=0)
    minimum_stock: int | None = Field(None, ge=0)
    unit: str | None = Field(None, min_length=1)
    price: int | None = Field(None, ge=0)
    supplier: str | None = None
    last_restock_date: dt.datetime | None = None


class MedicationOut(MedicationIn):
    id: int
    low_stock: bool


class StockMovementIn(CamelModel):
    quantity: int = Field(..., gt=0)
    type: MovementType
    reason: str | None = None
    treatment_id: int | None = None


class StockMovementOut(CamelModel):
    id: int
    medication_id: int
    quantity: int
    date: dt.datetime
    type: MovementType
    reason: str | None = None
    treatment_id: int | None = None


# =========================
# Documents
# =========================
class DocumentItem(CamelModel):
    treatment_id: int
    description: str
    cost: int


class DocumentCreateIn(CamelModel):
    patient_id: int
    type: DocumentType
    # soins sélectionnés; liste vide = montant forfaitaire
    treatment_ids: list[int] = Field(default_factory=list)
    date: dt.datetime | None = None
    notes: str | None = None
    status: DocumentStatus = DocumentStatus.DRAFT


class DocumentStatusPatch(CamelModel):
    status: DocumentStatus


class DocumentOut(CamelModel):
    id: int
    patient_id: int
    type: DocumentType
    number: str
    data: dict[str, str]
    items: list[DocumentItem]
    total: int
    date: dt.datetime
    notes: str | None = None
    status: DocumentStatus


class DocumentCreatedOut(DocumentOut):
    html: str


# =========================
# Paramètres
# =========================
class DocumentPrefix(CamelModel):
    invoice: str = "FAC"
    quote: str = "DEV"
    fee_note: str = "NH"


class CompanyInfo(CamelModel):
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""


class SettingsModel(CamelModel):
    currency: str = "EUR"
    currency_symbol: str = "€"
    document_prefix: DocumentPrefix = Field(default_factory=DocumentPrefix)
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)


# =========================
# Salle d'attente / statistiques
# =========================
class QueueEntryOut(CamelModel):
    appointment_id: int
    patient_id: int
    patient_name: str
    time: dt.time
    duration: int
    status: AppointmentStatus
    is_urgent: bool
    is_passenger: bool
    reason: str | None = None


class WaitingRoomOut(CamelModel):
    day: dt.date
    waiting: list[QueueEntryOut]
    in_consultation: list[QueueEntryOut]


class TreatmentCount(CamelModel):
    name: str
    count: int


class MonthlyStatOut(CamelModel):
    month: str
    total_revenue: int
    treatment_count: int
    patient_count: int
    common_treatments: list[TreatmentCount]
