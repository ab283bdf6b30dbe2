from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse

from . import services
from .config import CHECK_REFERENCES, LOG_LEVEL, SEED_DEMO, TEMPLATES_DIR
from .errors import ClinicError, DocumentRenderError, NotFoundError
from .schemas import (
    AppointmentIn,
    AppointmentOut,
    AppointmentPatch,
    DocumentCreatedOut,
    DocumentCreateIn,
    DocumentOut,
    DocumentStatusPatch,
    MedicationIn,
    MedicationOut,
    MedicationPatch,
    MonthlyStatOut,
    PatientIn,
    PatientOut,
    PatientPatch,
    PaymentIn,
    PaymentOut,
    PaymentPatch,
    SettingsModel,
    StockMovementIn,
    StockMovementOut,
    TreatmentIn,
    TreatmentOut,
    TreatmentPatch,
    WaitingRoomOut,
)
from .seed import seed_base
from .storage import ClinicStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# =========================
# Dépendances
# =========================
def get_store(request: Request) -> ClinicStore:
    return request.app.state.store


def get_templates_dir(request: Request) -> Path:
    return request.app.state.templates_dir


# =========================
# Gestion des erreurs
# =========================
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # 400 (et non 422) avec le détail champ par champ
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": jsonable_encoder(exc.errors())})


async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, DocumentRenderError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content={"detail": str(exc)})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Erreur non gérée sur %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Erreur interne du serveur"},
    )


# =========================
# Patients
# =========================
@router.get("/patients", response_model=list[PatientOut])
def list_patients(store: ClinicStore = Depends(get_store)):
    return store.patients.list()


@router.post("/patients", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(payload: PatientIn, store: ClinicStore = Depends(get_store)):
    return store.patients.create(payload.model_dump())


@router.get("/patients/{patient_id}", response_model=PatientOut)
def get_patient(patient_id: int, store: ClinicStore = Depends(get_store)):
    return store.patients.get(patient_id)


@router.patch("/patients/{patient_id}", response_model=PatientOut)
def update_patient(patient_id: int, payload: PatientPatch, store: ClinicStore = Depends(get_store)):
    return store.patients.update(patient_id, payload.changes())


@router.delete("/patients/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(patient_id: int, store: ClinicStore = Depends(get_store)) -> Response:
    store.patients.delete(patient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/patients/{patient_id}/appointments", response_model=list[AppointmentOut])
def patient_appointments(patient_id: int, store: ClinicStore = Depends(get_store)):
    return store.appointments.list(patient_id=patient_id)


@router.get("/patients/{patient_id}/treatments", response_model=list[TreatmentOut])
def patient_treatments(patient_id: int, store: ClinicStore = Depends(get_store)):
    return store.treatments.list(patient_id=patient_id)


@router.get("/patients/{patient_id}/documents", response_model=list[DocumentOut])
def patient_documents(patient_id: int, store: ClinicStore = Depends(get_store)):
    return store.documents.list(patient_id=patient_id)


@router.get("/patients/{patient_id}/payments", response_model=list[PaymentOut])
def patient_payments(patient_id: int, store: ClinicStore = Depends(get_store)):
    return store.payments.list(patient_id=patient_id)


# =========================
# Rendez-vous / salle d'attente
# =========================
@router.get("/appointments", response_model=list[AppointmentOut])
def list_appointments(day: dt.date | None = Query(None), store: ClinicStore = Depends(get_store)):
    if day is None:
        return store.appointments.list()
    return store.appointments.list(date=day)


@router.post("/appointments", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
def create_appointment(payload: AppointmentIn, store: ClinicStore = Depends(get_store)):
    return store.appointments.create(payload.model_dump())


@router.get("/appointments/{appointment_id}", response_model=AppointmentOut)
def get_appointment(appointment_id: int, store: ClinicStore = Depends(get_store)):
    return store.appointments.get(appointment_id)


@router.patch("/appointments/{appointment_id}", response_model=AppointmentOut)
def update_appointment(appointment_id: int, payload: AppointmentPatch, store: ClinicStore = Depends(get_store)):
    return services.update_appointment(store, appointment_id, payload.changes())


@router.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, store: ClinicStore = Depends(get_store)) -> Response:
    store.appointments.delete(appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/appointments/{appointment_id}/call", response_model=AppointmentOut)
def call_patient(appointment_id: int, store: ClinicStore = Depends(get_store)):
    return services.call_patient(store, appointment_id)


@router.post("/appointments/{appointment_id}/finish", response_model=AppointmentOut)
def finish_consultation(appointment_id: int, store: ClinicStore = Depends(get_store)):
    return services.finish_consultation(store, appointment_id)


@router.get("/waiting-room", response_model=WaitingRoomOut)
def waiting_room(day: dt.date | None = Query(None), store: ClinicStore = Depends(get_store)):
    """File du jour: urgences d'abord, puis par heure."""
    return services.waiting_room(store, day or dt.date.today())


# =========================
# Traitements
# =========================
@router.post("/treatments", response_model=TreatmentOut, status_code=status.HTTP_201_CREATED)
def create_treatment(payload: TreatmentIn, store: ClinicStore = Depends(get_store)):
    return store.treatments.create(payload.model_dump())


@router.patch("/treatments/{treatment_id}", response_model=TreatmentOut)
def update_treatment(treatment_id: int, payload: TreatmentPatch, store: ClinicStore = Depends(get_store)):
    return services.update_treatment(store, treatment_id, payload.changes())


@router.delete("/treatments/{treatment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_treatment(treatment_id: int, store: ClinicStore = Depends(get_store)) -> Response:
    store.treatments.delete(treatment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================
# Documents
# =========================
@router.post("/documents", response_model=DocumentCreatedOut, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentCreateIn,
    store: ClinicStore = Depends(get_store),
    templates_dir: Path = Depends(get_templates_dir),
):
    """
    Génère facture / devis / note d'honoraires:
    - le HTML est rendu avant l'enregistrement
    - si le rendu échoue (500), aucun document n'est créé
    """
    result = services.create_document(
        store,
        patient_id=payload.patient_id,
        doc_type=payload.type,
        treatment_ids=payload.treatment_ids,
        templates_dir=templates_dir,
        issued=payload.date,
        notes=payload.notes,
        status=payload.status,
    )
    out = DocumentOut.model_validate(result.document)
    return DocumentCreatedOut(**out.model_dump(), html=result.html)


@router.get("/documents/{document_id}", response_model=DocumentOut)
def get_document(document_id: int, store: ClinicStore = Depends(get_store)):
    return store.documents.get(document_id)


@router.patch("/documents/{document_id}", response_model=DocumentOut)
def update_document_status(document_id: int, payload: DocumentStatusPatch, store: ClinicStore = Depends(get_store)):
    return services.set_document_status(store, document_id, payload.status)


@router.get("/documents/{document_id}/render", response_class=HTMLResponse)
def render_document(
    document_id: int,
    store: ClinicStore = Depends(get_store),
    templates_dir: Path = Depends(get_templates_dir),
) -> HTMLResponse:
    return HTMLResponse(services.render_document(store, document_id, templates_dir))


# =========================
# Médicaments / stock
# =========================
@router.get("/medications", response_model=list[MedicationOut])
def list_medications(store: ClinicStore = Depends(get_store)):
    return store.medications.list()


@router.post("/medications", response_model=MedicationOut, status_code=status.HTTP_201_CREATED)
def create_medication(payload: MedicationIn, store: ClinicStore = Depends(get_store)):
    return store.medications.create(payload.model_dump())


# déclarée avant /medications/{medication_id}
@router.get("/medications/low-stock", response_model=list[MedicationOut])
def low_stock(store: ClinicStore = Depends(get_store)):
    return services.low_stock_medications(store)


@router.get("/medications/{medication_id}", response_model=MedicationOut)
def get_medication(medication_id: int, store: ClinicStore = Depends(get_store)):
    return store.medications.get(medication_id)


@router.patch("/medications/{medication_id}", response_model=MedicationOut)
def update_medication(medication_id: int, payload: MedicationPatch, store: ClinicStore = Depends(get_store)):
    return store.medications.update(medication_id, payload.changes())


@router.delete("/medications/{medication_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_medication(medication_id: int, store: ClinicStore = Depends(get_store)) -> Response:
    store.medications.delete(medication_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/medications/{medication_id}/stock-movements", response_model=list[StockMovementOut])
def list_stock_movements(medication_id: int, store: ClinicStore = Depends(get_store)):
    store.medications.get(medication_id)
    return store.stock_movements.list(medication_id=medication_id)


@router.post(
    "/medications/{medication_id}/stock-movements",
    response_model=StockMovementOut,
    status_code=status.HTTP_201_CREATED,
)
def move_stock(medication_id: int, payload: StockMovementIn, store: ClinicStore = Depends(get_store)):
    return services.move_stock(
        store,
        medication_id,
        quantity=payload.quantity,
        movement_type=payload.type,
        reason=payload.reason,
        treatment_id=payload.treatment_id,
    )


# =========================
# Paiements
# =========================
@router.post("/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def create_payment(payload: PaymentIn, store: ClinicStore = Depends(get_store)):
    return services.record_payment(store, payload.model_dump())


@router.get("/payments/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: int, store: ClinicStore = Depends(get_store)):
    return store.payments.get(payment_id)


@router.patch("/payments/{payment_id}", response_model=PaymentOut)
def update_payment(payment_id: int, payload: PaymentPatch, store: ClinicStore = Depends(get_store)):
    return services.update_payment(store, payment_id, payload.changes())


# =========================
# Paramètres / statistiques
# =========================
@router.get("/settings", response_model=SettingsModel)
def get_settings(store: ClinicStore = Depends(get_store)):
    return store.get_settings()


@router.post("/settings", response_model=SettingsModel)
def save_settings(payload: SettingsModel, store: ClinicStore = Depends(get_store)):
    return store.save_settings(payload.model_dump())


@router.get("/stats", response_model=list[MonthlyStatOut])
def stats(store: ClinicStore = Depends(get_store)):
    return services.financial_stats(store)


# =========================
# Application
# =========================
def create_app(
    store: ClinicStore | None = None,
    templates_dir: Path | None = None,
    seed_demo: bool = SEED_DEMO,
) -> FastAPI:
    """
    Application FastAPI:
    - un seul store, créé ici et partagé par tous les handlers (app.state)
    - paramètres par défaut (et démo si demandé) chargés au démarrage
    """
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s: %(message)s")

    owns_store = store is None
    store = store or ClinicStore(check_references=CHECK_REFERENCES)
    seed_base(store, demo=seed_demo)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # un store fourni par l'appelant reste à sa charge
        if owns_store:
            store.dispose()

    app = FastAPI(title="Cabinet Dentaire API", version="1.0.0", lifespan=lifespan)
    app.state.store = store
    app.state.templates_dir = Path(templates_dir or TEMPLATES_DIR)

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ClinicError, clinic_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    return app


app = create_app()
