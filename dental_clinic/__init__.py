"""
Backend du cabinet dentaire.

Structure:
- db.py           : engine SQLite en mémoire et sessions SQLAlchemy
- models.py       : modèles ORM et enums
- schemas.py      : schémas Pydantic (JSON camelCase)
- storage.py      : store du cabinet et dépôts CRUD
- billing.py      : totaux, montant en lettres, champs des documents
- documents.py    : rendu des modèles HTML
- waiting_room.py : file d'attente du jour
- services.py     : cas d'usage (documents, paiements, stock, statistiques)
- seed.py         : données initiales
- api_main.py     : API REST FastAPI
- cli.py          : CLI de l'accueil (appels à l'API)
"""
