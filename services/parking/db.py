# ============================================================
# db.py - Moteur SQLModel et sessions
# ============================================================
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from parking import config


def make_engine(url: str = config.DATABASE_URL) -> Engine:
    if url.startswith("sqlite"):
        # threads des requêtes et du sweeper partagent le moteur
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, pool_pre_ping=True)


def open_session(engine: Engine) -> Session:
    # les lignes sont rendues aux appelants après fermeture de la session
    return Session(engine, expire_on_commit=False)


def create_tables(engine: Engine):
    # les modèles doivent être importés pour que leurs tables soient créées
    from parking import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


engine = make_engine()
