import pytest

from eventticket.cache import QueryCache, query_cache
from eventticket.core.coordinator import TransactionCoordinator
from eventticket.core.dashboard import Dashboard
from eventticket.core.reader import LedgerReader
from eventticket.core.refresh import RefreshController, refresh_controller
from eventticket.registries import FakeRegistry
from eventticket.settings import Settings
from eventticket.settings import settings as eventticket_settings


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def settings():
    # override settings for tests
    eventticket_settings.eventticket_data_folder = "./tests/data"
    eventticket_settings.enable_log_to_file = False
    eventticket_settings.receipt_poll_interval = 0.01
    eventticket_settings.receipt_timeout = 5

    yield eventticket_settings


@pytest.fixture(autouse=True)
def run_before_and_after_tests(settings: Settings):
    """Fixture to execute asserts before and after a test is run"""
    _settings_cleanup(settings)
    yield  # this is where the testing happens
    _settings_cleanup(settings)


@pytest.fixture()
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture()
def cache() -> QueryCache:
    return QueryCache()


@pytest.fixture()
def refresh() -> RefreshController:
    return RefreshController()


@pytest.fixture()
def reader(registry: FakeRegistry, cache: QueryCache, refresh: RefreshController):
    return LedgerReader(registry, cache, refresh)


@pytest.fixture()
def coordinator(reader: LedgerReader, refresh: RefreshController):
    return TransactionCoordinator(reader, refresh=refresh)


@pytest.fixture()
def dashboard(reader: LedgerReader, refresh: RefreshController):
    return Dashboard(reader, refresh)


def _settings_cleanup(settings: Settings):
    settings.eventticket_running = True
    settings.eventticket_registry_class = "JsonRpcRegistry"
    settings.event_ticket_address = None
    settings.account_address = None
    settings.chain_id = 31337
    settings.rpc_url = "http://127.0.0.1:8545"
    refresh_controller.reset()
    query_cache.clear()
