import pytest

from netprov.config import Settings
from netprov.services.drivers.base import DriverPaths
from netprov.services.engine import build_engine

from fakes import default_host


@pytest.fixture
def host():
    return default_host()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        APP_DATA_DIR=str(tmp_path / "data"),
        USE_SUDO=False,
        ACTIVATION_TIMEOUT=2.0,
        SECRET_KEY="test-secret",
        ADMIN_TOKEN="test-token",
    )


@pytest.fixture
def paths(tmp_path):
    return DriverPaths(str(tmp_path / "state")).ensure()


@pytest.fixture
def engine(settings, host):
    return build_engine(settings, runner=host, discovery=host)


@pytest.fixture
def reconciler(engine):
    return engine.reconciler
