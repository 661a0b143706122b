# golden_glimpses/db.py
import logging
from pathlib import Path
from sqlmodel import SQLModel, create_engine
from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DB_PATH = DATA_DIR / "app.db"

def _pg_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    elif url.startswith("postgresql://") and "+psycopg" not in url:
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url

def make_engine(database_url: str = "") -> Engine:
    """
    Postgres when DATABASE_URL is set, otherwise a SQLite file under data/.
    The connection is probed once so an unreachable server fails here, at startup.
    """
    url = _pg_url(database_url) if database_url else f"sqlite:///{DB_PATH}"
    if url.startswith("sqlite"):
        if not database_url:
            DATA_DIR.mkdir(parents=True, exist_ok=True)
        eng = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    else:
        eng = create_engine(url, pool_pre_ping=True)

    with eng.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database ready: %s", eng.url.render_as_string(hide_password=True))
    return eng

def init_db(engine: Engine) -> None:
    from .models import Capsule, User  # noqa: F401  (registers tables)
    SQLModel.metadata.create_all(engine)
