"""
Pytest configuration and shared fixtures.

Every fixture works against a temporary SQLite file and explicit Settings;
nothing touches the environment or the network.
"""

from datetime import date

import pytest

from gripp_mirror.cache import TieredCache
from gripp_mirror.config import Settings
from gripp_mirror.hours import HoursEngine
from gripp_mirror.store import LocalStore
from gripp_mirror.sync import SyncOrchestrator

from helpers import (
    FakeClock,
    FakeUpstream,
    gripp_absence,
    gripp_contract,
    gripp_employee,
    gripp_holiday,
    gripp_hour,
    gripp_invoice,
    gripp_project,
)

# ==============================================================================
# Settings and store
# ==============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment."""
    return Settings(
        _env_file=None,
        upstream_api_key="test-key",
        upstream_url="https://gripp.test/public/api3.php",
        upstream_retry_delay=0,
        upstream_retry_max_delay=0,
        upstream_retry_jitter=0,
        upstream_rate_limit_requests=1000,
        database_path=tmp_path / "mirror.sqlite",
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def store(settings) -> LocalStore:
    store = LocalStore.from_settings(settings)
    store.init_schema()
    return store


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def data_cache(clock) -> TieredCache:
    return TieredCache("data", 3600, clock=clock)


# ==============================================================================
# Upstream data
# ==============================================================================


@pytest.fixture
def upstream_rows() -> dict[str, list[dict]]:
    """A small, consistent upstream dataset around ISO week 10 of 2024."""
    return {
        "employee.get": [
            gripp_employee(1, "Anna", "de Vries", function="Developer"),
            gripp_employee(2, "Bram", "Jansen", function=None),
            gripp_employee(3, "Cor", "Bakker", active=False),
        ],
        "employmentcontract.get": [
            gripp_contract(10, 1, even=8.0),
            gripp_contract(11, 2, even=8.0, odd=4.0),
        ],
        "hour.get": [
            gripp_hour(100, 1, "2024-03-04", 7),
            gripp_hour(101, 1, "2024-03-05", 7),
            gripp_hour(102, 1, "2024-03-07", 7),
            gripp_hour(103, 1, "2024-03-08", 7),
            gripp_hour(104, 2, "2024-03-04", 8),
        ],
        "absencerequest.get": [
            gripp_absence(200, 1, [(201, "2024-03-06", 4.0, 2, "GOEDGEKEURD")]),
            gripp_absence(210, 2, [(211, "2024-03-05", 8.0, 1, "INGEDIEND")]),
        ],
        "holiday.get": [
            gripp_holiday("2024-03-29", "Goede Vrijdag"),
            gripp_holiday("2024-04-01", "Paasmaandag"),
        ],
        "project.get": [
            gripp_project(500, lines=[(600, "Design", 40.0), (601, "Development", 120.0)]),
            gripp_project(501, "Intranet"),
        ],
        "invoice.get": [gripp_invoice(900), gripp_invoice(901, "2024-04-02")],
    }


@pytest.fixture
def upstream(upstream_rows) -> FakeUpstream:
    return FakeUpstream(upstream_rows)


@pytest.fixture
def orchestrator(upstream, store, settings, data_cache) -> SyncOrchestrator:
    return SyncOrchestrator(
        upstream, store, settings, caches=[data_cache], today=lambda: date(2024, 4, 15)
    )


@pytest.fixture
def engine(store, settings) -> HoursEngine:
    return HoursEngine(store, settings)
