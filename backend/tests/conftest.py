import os
import sys
from pathlib import Path

import pytest

# Keep tests deterministic and local-only.
os.environ["QCHECK_SKIP_DOTENV"] = "1"
os.environ["QCHECK_ENV"] = "test"
os.environ["QCHECK_STORAGE_BACKEND"] = "local"
os.environ["QCHECK_UPLOAD_DIR"] = "backend/test_uploads"
os.environ["QCHECK_DEV_LOGIN"] = "1"
os.environ["QCHECK_JWT_SECRET"] = "test-secret"
os.environ["QCHECK_LOG_LEVEL"] = "WARNING"

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

TEST_DB_PATH = BACKEND_ROOT / "test_qcheck.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()


@pytest.fixture
def store(tmp_path):
    from qcheck.infra.db.session import build_engine, build_session_factory, init_db
    from qcheck.infra.db.store import DatabaseStore

    engine = build_engine(f"sqlite:///{tmp_path / 'unit.db'}")
    init_db(engine)
    yield DatabaseStore(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def storage(tmp_path):
    from qcheck.infra.storage.local import LocalFileStorage

    return LocalFileStorage(tmp_path / "uploads")
