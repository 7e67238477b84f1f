import pytest

from twofactor_backend import create_app
from twofactor_core.authenticator import Authenticator
from twofactor_core.config import VerificationConfig
from twofactor_core.repository import InMemoryCredentialRepository
from twofactor_database.db_manager import SQLiteCredentialRepository

# RFC 4226 / RFC 6238 reference secret
RFC_SECRET = b"12345678901234567890"
RFC_SECRET_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"

# a clock reading well inside a 30 s step: counter 37037036
FIXED_MILLIS = 1_111_111_095_000


@pytest.fixture
def config():
    return VerificationConfig()


@pytest.fixture
def authenticator(config):
    return Authenticator(config, clock=lambda: FIXED_MILLIS)


@pytest.fixture
def memory_repository():
    return InMemoryCredentialRepository()


@pytest.fixture
def sqlite_repository(tmp_path):
    return SQLiteCredentialRepository(str(tmp_path / "2fa_test.db"))


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    if request.param == "memory":
        return InMemoryCredentialRepository()
    return SQLiteCredentialRepository(str(tmp_path / "2fa_test.db"))


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "TWOFACTOR_DATABASE": str(tmp_path / "2fa_api.db"),
        "TWOFACTOR_ISSUER": "Test Org",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
