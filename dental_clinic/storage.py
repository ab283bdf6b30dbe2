from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Generic, Iterator, Mapping, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import MEMORY_URL, Base, make_engine, make_session_factory, session_scope
from .errors import MissingReferenceError, NotFoundError
from .models import (
    Appointment,
    ClinicSettings,
    Document,
    Medication,
    Patient,
    Payment,
    StockMovement,
    Treatment,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Base)

SETTINGS_ID = 1

DEFAULT_SETTINGS: dict[str, Any] = {
    "currency": "EUR",
    "currency_symbol": "€",
    "document_prefix": {"invoice": "FAC", "quote": "DEV", "fee_note": "NH"},
    "company_info": {"name": "", "address": "", "phone": "", "email": ""},
}


class Repository(Generic[M]):
    """
    CRUD d'un type d'entité:
    - list / get / create / update / delete
    - filtres par clé étrangère (ex. traitements d'un patient)
    - contrôle optionnel des références à l'écriture
    """

    def __init__(
        self,
        store: ClinicStore,
        model: type[M],
        label: str,
        references: Mapping[str, type[Base]] | None = None,
        nested_references: Mapping[str, tuple[str, type[Base]]] | None = None,
    ) -> None:
        self.store = store
        self.model = model
        self.label = label
        # champ -> modèle référencé (patient_id -> Patient)
        self.references = dict(references or {})
        # champ liste -> (clé de chaque élément, modèle référencé)
        self.nested_references = dict(nested_references or {})

    def list(self, **filters: Any) -> list[M]:
        with self.store.session() as s:
            q = select(self.model).filter_by(**filters).order_by(self.model.id.asc())
            return list(s.scalars(q))

    def find(self, entity_id: int) -> M | None:
        with self.store.session() as s:
            return s.get(self.model, entity_id)

    def get(self, entity_id: int) -> M:
        obj = self.find(entity_id)
        if obj is None:
            raise NotFoundError(self.label, entity_id)
        return obj

    def create(self, data: Mapping[str, Any]) -> M:
        with self.store.session() as s:
            self.check_references(s, data)
            obj = self.model(**data)
            s.add(obj)
            s.flush()
            logger.info("%s %s créé", self.label, obj.id)
            return obj

    def update(self, entity_id: int, changes: Mapping[str, Any]) -> M:
        with self.store.session() as s:
            obj = s.get(self.model, entity_id)
            if obj is None:
                raise NotFoundError(self.label, entity_id)
            self.check_references(s, changes)
            for field, value in changes.items():
                setattr(obj, field, value)
            s.flush()
            return obj

    def delete(self, entity_id: int) -> None:
        with self.store.session() as s:
            obj = s.get(self.model, entity_id)
            if obj is None:
                raise NotFoundError(self.label, entity_id)
            s.delete(obj)
        logger.info("%s %s supprimé", self.label, entity_id)

    def check_references(self, s: Session, data: Mapping[str, Any]) -> None:
        """Contrôle des clés étrangères dans la session de l'appelant."""
        if not self.store.check_references:
            return

        for field, target in self.references.items():
            ref_id = data.get(field)
            if ref_id is not None and s.get(target, ref_id) is None:
                raise MissingReferenceError(field, ref_id)

        for field, (key, target) in self.nested_references.items():
            for item in data.get(field) or []:
                ref_id = item.get(key)
                if ref_id is not None and s.get(target, ref_id) is None:
                    raise MissingReferenceError(f"{field}.{key}", ref_id)


class ClinicStore:
    """
    Store du cabinet, créé une seule fois au démarrage et passé aux handlers.

    Base SQLite en mémoire (connexion unique): un verrou sérialise les sessions,
    deux créations concurrentes n'obtiennent jamais le même id.
    """

    def __init__(self, url: str = MEMORY_URL, check_references: bool = True, echo: bool = False) -> None:
        self.engine = make_engine(url, echo=echo)
        self._factory = make_session_factory(self.engine)
        self._lock = threading.RLock()
        self.check_references = check_references

        Base.metadata.create_all(bind=self.engine)

        self.patients: Repository[Patient] = Repository(self, Patient, "Patient")
        self.appointments: Repository[Appointment] = Repository(
            self, Appointment, "Rendez-vous", references={"patient_id": Patient}
        )
        self.treatments: Repository[Treatment] = Repository(
            self,
            Treatment,
            "Traitement",
            references={"patient_id": Patient, "document_id": Document},
            nested_references={"medications": ("medication_id", Medication)},
        )
        self.payments: Repository[Payment] = Repository(
            self,
            Payment,
            "Paiement",
            references={"patient_id": Patient, "treatment_id": Treatment, "document_id": Document},
        )
        self.medications: Repository[Medication] = Repository(self, Medication, "Médicament")
        self.stock_movements: Repository[StockMovement] = Repository(
            self,
            StockMovement,
            "Mouvement de stock",
            references={"medication_id": Medication, "treatment_id": Treatment},
        )
        self.documents: Repository[Document] = Repository(
            self, Document, "Document", references={"patient_id": Patient}
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock:
            with session_scope(self._factory) as s:
                yield s

    # =========================
    # Paramètres (singleton)
    # =========================
    def get_settings(self) -> ClinicSettings:
        """Paramètres courants; valeurs par défaut si jamais enregistrés."""
        with self.session() as s:
            current = s.get(ClinicSettings, SETTINGS_ID)
            if current is not None:
                return current
        return ClinicSettings(id=SETTINGS_ID, **copy.deepcopy(DEFAULT_SETTINGS))

    def save_settings(self, data: Mapping[str, Any]) -> ClinicSettings:
        with self.session() as s:
            current = s.get(ClinicSettings, SETTINGS_ID)
            if current is None:
                current = ClinicSettings(id=SETTINGS_ID, **copy.deepcopy(DEFAULT_SETTINGS))
                s.add(current)
            for field, value in data.items():
                setattr(current, field, value)
            s.flush()
            logger.info("Paramètres du cabinet mis à jour")
            return current

    def dispose(self) -> None:
        self.engine.dispose()
