import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    # `.env` values like `mysql://...` get the PyMySQL driver spelled out.
    url = (url or "").strip()
    return url.replace("mysql://", "mysql+pymysql://", 1) if url.startswith("mysql://") else url


def build_engine(url: str) -> Engine:
    """
    Engine for `url`. SQLite connections are shared across FastAPI worker
    threads and run with foreign keys on and a busy timeout, since merit-list
    write-back commits once per application.
    """
    url = normalize_database_url(url)
    kwargs = {"pool_pre_ping": True}
    if not url.startswith("sqlite"):
        return create_engine(url, **kwargs)

    kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    eng = create_engine(url, **kwargs)

    @event.listens_for(eng, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):  # noqa: ANN001
        try:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.execute("PRAGMA busy_timeout=30000;")
            if ":memory:" not in url:
                cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.close()
        except Exception as e:
            logger.warning("Failed to set SQLite pragmas: %s", e)

    return eng


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Register every table on Base.metadata before create_all.
    from .models import application, criteria, merit_list, transition  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Admissions tables ready on %s", engine.url.render_as_string(hide_password=True))
