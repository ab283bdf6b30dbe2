from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Base SQLite en mémoire: rien n'est écrit sur disque, tout est perdu au redémarrage
MEMORY_URL = "sqlite+pysqlite:///:memory:"


class Base(DeclarativeBase):
    """Base ORM commune à tous les modèles."""
    pass


def make_engine(url: str = MEMORY_URL, echo: bool = False) -> Engine:
    """
    Engine SQLAlchemy pour le store.
    En mémoire, une seule connexion partagée (StaticPool), sinon chaque
    session verrait une base vide.
    """
    if url.endswith(":memory:"):
        return create_engine(
            url,
            echo=echo,              # True pour voir les requêtes
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """
    Context manager pour gérer correctement la session:
    - commit si tout va bien
    - rollback sur exception
    - close toujours
    """
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
