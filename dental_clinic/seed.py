from __future__ import annotations

import copy
import datetime as dt
import logging

from sqlalchemy import select

from .models import ClinicSettings, Medication, Patient
from .storage import DEFAULT_SETTINGS, SETTINGS_ID, ClinicStore

logger = logging.getLogger(__name__)


def seed_base(store: ClinicStore, demo: bool = False) -> None:
    """
    Popule les données minimales (idempotent):
    - paramètres du cabinet (devise, préfixes de numérotation)
    - avec demo=True: quelques médicaments et patients de démonstration
    """
    with store.session() as s:
        if s.get(ClinicSettings, SETTINGS_ID) is None:
            s.add(ClinicSettings(id=SETTINGS_ID, **copy.deepcopy(DEFAULT_SETTINGS)))

        if not demo:
            return

        # Médicaments (nom, stock, minimum, unité, prix)
        medications = [
            ("Amoxicilline 1g", 40, 10, "boîte", 8),
            ("Ibuprofène 400mg", 25, 10, "boîte", 4),
            ("Articaïne 4%", 6, 20, "cartouche", 2),
            ("Chlorhexidine 0,12%", 12, 5, "flacon", 6),
        ]
        for name, stock, minimum, unit, price in medications:
            if s.execute(select(Medication).where(Medication.name == name)).scalar_one_or_none() is None:
                s.add(Medication(
                    name=name,
                    current_stock=stock,
                    minimum_stock=minimum,
                    unit=unit,
                    price=price,
                    last_restock_date=dt.datetime.now(),
                ))

        # Patients
        patients = [
            ("Claire", "Martin", "AB123456", dt.date(1985, 4, 12), "0601020304"),
            ("Karim", "Benali", "CD654321", dt.date(1972, 11, 3), "0611223344"),
        ]
        for first_name, last_name, cin, born, phone in patients:
            if s.execute(select(Patient).where(Patient.cin == cin)).scalar_one_or_none() is None:
                s.add(Patient(
                    first_name=first_name,
                    last_name=last_name,
                    cin=cin,
                    date_of_birth=born,
                    phone=phone,
                    medical_history=[],
                ))

    logger.info("Données de démonstration chargées")
