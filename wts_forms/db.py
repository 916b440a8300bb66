from sqlmodel import create_engine, SQLModel, Session
from sqlalchemy import event
from sqlalchemy.engine import Engine
import logging

from wts_forms.core.config import settings

logger = logging.getLogger(__name__)


def _make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Sync jobs and request handlers share the engine across threads
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=300,
        pool_timeout=30,
        connect_args={"connect_timeout": 10},
    )


engine = _make_engine(settings.DATABASE_URL)


if engine.dialect.name == "postgresql":

    @event.listens_for(engine, "connect")
    def set_statement_timeout(dbapi_connection, connection_record):
        """Cap query time so a stuck queue write cannot hold a connection."""
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("SET statement_timeout = '30s'")
        except Exception as e:
            logger.warning(f"Could not set statement timeout: {e}")
        finally:
            cursor.close()


def get_session():
    with Session(engine) as session:
        yield session


def create_db_and_tables(bind: Engine = engine):
    # Registers storage_item on the metadata
    import wts_forms.models  # noqa: F401

    SQLModel.metadata.create_all(bind)
