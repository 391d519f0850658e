import os
import sys
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker


# Ensure `import backend.admissions...` works regardless of where pytest is run from.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Set before anything imports backend.admissions.config so a developer .env never leaks in.
os.environ["DISABLE_DOTENV"] = "1"
os.environ.setdefault("MERIT_WAITLIST_FACTOR", "0.2")


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite3"


@pytest.fixture()
def app(test_db_path: Path) -> FastAPI:
    """
    Create a FastAPI app wired to a temporary SQLite DB.

    We build a bare app around the router instead of importing `main` so the
    startup hook never touches the default database file.
    """
    os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{test_db_path}"

    from backend.admissions import database as db

    engine = db.build_engine(os.environ["DATABASE_URL"])
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the shared database module so router dependencies use the test DB.
    db.engine = engine
    db.SessionLocal = TestingSessionLocal

    # Import models so Base metadata is populated, then create tables.
    from backend.admissions.models import application, criteria, merit_list, transition  # noqa: F401

    db.Base.metadata.drop_all(bind=engine)
    db.Base.metadata.create_all(bind=engine)

    from backend.admissions.api import admission as admission_api
    from backend.admissions.main import app_error_handler
    from backend.admissions.utils.error_handlers import AppError

    fastapi_app = FastAPI()
    fastapi_app.include_router(admission_api.router)
    fastapi_app.add_exception_handler(AppError, app_error_handler)

    return fastapi_app


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    from backend.admissions import database as db

    session = db.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def repo(db_session):
    from backend.admissions.repositories.admission_repository import SqlAlchemyAdmissionRepository

    return SqlAlchemyAdmissionRepository(db_session)
