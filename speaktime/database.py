# speaktime/database.py
from sqlmodel import create_engine, SQLModel, Session
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Optional
import os
from dotenv import load_dotenv
from speaktime.utils.config import settings

load_dotenv()

# Obtener URL de la base de datos desde variables de entorno
DATABASE_URL = os.getenv("DATABASE_URL", settings.database_url)


def build_engine(url: str) -> Engine:
    """Crear engine; SQLite en memoria comparte una sola conexión"""
    if "sqlite" not in url:
        return create_engine(url)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, connect_args={"check_same_thread": False})


# Crear engine
engine = build_engine(DATABASE_URL)


def create_db_and_tables(target: Optional[Engine] = None):
    """Crear todas las tablas en la base de datos"""
    SQLModel.metadata.create_all(target or engine)


@contextmanager
def get_session(target: Optional[Engine] = None):
    """Context manager para manejar sesiones de base de datos"""
    # Las filas devueltas se usan fuera de la sesión
    session = Session(target or engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
