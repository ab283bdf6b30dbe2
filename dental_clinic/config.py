from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Modèles HTML des documents (facture, devis, note d'honoraires)
TEMPLATES_DIR = Path(os.getenv("CLINIC_TEMPLATES_DIR", Path(__file__).resolve().parent / "templates"))

LOG_LEVEL = os.getenv("CLINIC_LOG_LEVEL", "INFO").upper()

# Données de démonstration au démarrage (médicaments, patients)
SEED_DEMO = os.getenv("CLINIC_SEED_DEMO", "false").lower() == "true"

# Vérifie l'existence des patients/traitements/médicaments référencés à l'écriture
CHECK_REFERENCES = os.getenv("CLINIC_CHECK_REFERENCES", "true").lower() == "true"

# Utilisé par la CLI (accueil) pour joindre l'API
API_BASE = os.getenv("CLINIC_API_BASE", "http://127.0.0.1:8000")
HTTP_TIMEOUT = float(os.getenv("CLINIC_HTTP_TIMEOUT", "10"))
