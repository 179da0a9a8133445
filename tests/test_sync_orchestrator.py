"""Tests for SyncOrchestrator against a fake upstream and a real store."""

import asyncio
import threading
from datetime import date, datetime, timezone

import pytest

from gripp_mirror.errors import NetworkError, SyncFailed, SyncInProgressError, UpstreamError
from gripp_mirror.store import DateWindow, EntityType
from gripp_mirror.sync import SYNC_ORDER
from gripp_mirror.upstream import Filter

from helpers import gripp_employee, gripp_hour, gripp_project


async def seed(orchestrator, *entities):
    for entity in entities:
        await orchestrator.sync_entity(entity)


def ids(store, entity):
    return [row["id"] for row in store.list_rows(entity)]


class TestFullSync:
    """Tests for full replace syncs."""

    @pytest.mark.asyncio
    async def test_sync_employees(self, orchestrator, store) -> None:
        result = await orchestrator.sync_entity("employees")

        assert result.entity is EntityType.EMPLOYEES
        assert result.saved == 3
        assert result.skipped == 0
        assert result.errors == []
        assert result.window is None
        assert ids(store, "employees") == [1, 2, 3]
        assert store.sync_status("employees")["status"] == "success"

    @pytest.mark.asyncio
    async def test_resync_is_idempotent(self, orchestrator, store) -> None:
        """Syncing unchanged upstream data twice leaves identical rows."""
        await seed(orchestrator, "employees", "absences")
        before = store.list_rows("absences")
        result = await orchestrator.sync_entity("absences")

        assert result.saved == 2
        assert store.list_rows("absences") == before

    @pytest.mark.asyncio
    async def test_removed_upstream_rows_disappear(self, orchestrator, store, upstream) -> None:
        await seed(orchestrator, "employees", "projects")
        upstream.collections["project.get"] = upstream.collections["project.get"][:1]
        await orchestrator.sync_entity("projects")
        assert ids(store, "projects") == [500]

    @pytest.mark.asyncio
    async def test_project_lines_are_mirrored(self, orchestrator, store, upstream) -> None:
        """Lines travel with their project and are replaced with it."""
        result = await orchestrator.sync_entity("projects")

        assert result.saved == 2
        projects = store.list_rows("projects")
        assert [line["id"] for line in projects[0]["lines"]] == [600, 601]
        assert projects[0]["lines"][1]["description"] == "Development"
        assert projects[1]["lines"] == []

        upstream.collections["project.get"] = [
            gripp_project(500, lines=[(602, "Support", 10.0)]),
        ]
        await orchestrator.sync_entity("projects")

        project = store.get_row("projects", 500)
        assert [line["id"] for line in project["lines"]] == [602]
        assert project["lines"][0]["product_name"] == "Consultancy"
        assert store.get_row("projects", 501) is None

    @pytest.mark.asyncio
    async def test_holidays_keyed_by_date(self, orchestrator, store) -> None:
        result = await orchestrator.sync_entity("holidays")
        assert result.saved == 2
        assert store.get_row("holidays", "2024-03-29")["name"] == "Goede Vrijdag"

    @pytest.mark.asyncio
    async def test_result_as_dict(self, orchestrator) -> None:
        data = (await orchestrator.sync_entity("employees")).as_dict()
        assert data["entity"] == "employees"
        assert data["saved"] == 3
        assert data["error_count"] == 0
        assert data["window"] is None


class TestValidation:
    """Tests for record-level problems."""

    @pytest.mark.asyncio
    async def test_invalid_record_is_skipped(self, orchestrator, store, upstream) -> None:
        broken = gripp_hour(199, 1, "2024-03-04", 1)
        del broken["date"]
        upstream.collections["hour.get"].append(broken)
        await seed(orchestrator, "employees")

        result = await orchestrator.sync_entity("hours")

        assert result.saved == 5
        assert result.skipped == 1
        assert len(result.errors) == 1
        assert "199" in result.errors[0]
        assert 199 not in ids(store, "hours")

    @pytest.mark.asyncio
    async def test_orphans_are_skipped_without_error(self, orchestrator, store, upstream) -> None:
        upstream.collections["hour.get"].append(gripp_hour(198, 99, "2024-03-04", 1))
        await seed(orchestrator, "employees")

        result = await orchestrator.sync_entity("hours")

        assert result.saved == 5
        assert result.skipped == 1
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_protected_function_survives_empty_upstream_value(
        self, orchestrator, store, upstream
    ) -> None:
        """A curated function title is kept when the upstream sends none."""
        await seed(orchestrator, "employees")
        upstream.collections["employee.get"][0] = gripp_employee(1, "Anna", "de Vries", function=None)

        result = await orchestrator.sync_entity("employees")

        assert result.restored == 1
        assert store.get_row("employees", 1)["function"] == "Developer"
        assert store.get_row("employees", 2)["function"] is None

    @pytest.mark.asyncio
    async def test_upstream_function_wins_when_set(self, orchestrator, store, upstream) -> None:
        await seed(orchestrator, "employees")
        upstream.collections["employee.get"][0] = gripp_employee(1, "Anna", "de Vries", function="Lead")

        result = await orchestrator.sync_entity("employees")

        assert result.restored == 0
        assert store.get_row("employees", 1)["function"] == "Lead"


class TestFailures:
    """Tests for failed syncs: previous data always survives."""

    @pytest.mark.asyncio
    async def test_nothing_saved_rolls_back(self, orchestrator, store, upstream) -> None:
        await seed(orchestrator, "employees", "hours")
        for row in upstream.collections["hour.get"]:
            del row["date"]

        with pytest.raises(SyncFailed) as exc_info:
            await orchestrator.sync_entity("hours")

        assert exc_info.value.error_count == 5
        assert ids(store, "hours") == [100, 101, 102, 103, 104]
        status = store.sync_status("hours")
        assert status["status"] == "error"
        assert status["last_success"] is not None

    @pytest.mark.asyncio
    async def test_empty_upstream_fails(self, orchestrator, store, upstream) -> None:
        await seed(orchestrator, "projects")
        upstream.collections["project.get"] = []

        with pytest.raises(SyncFailed) as exc_info:
            await orchestrator.sync_entity("projects")

        assert exc_info.value.errors == ["Upstream returned no records"]
        assert ids(store, "projects") == [500, 501]

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, orchestrator, store, upstream) -> None:
        await seed(orchestrator, "projects")
        upstream.errors["project.get"] = NetworkError("connection reset")

        with pytest.raises(NetworkError):
            await orchestrator.sync_entity("projects")

        assert ids(store, "projects") == [500, 501]
        assert store.sync_status("projects")["error"] == "connection reset"

    @pytest.mark.asyncio
    async def test_failed_pages_keep_fetched_rows(self, orchestrator, store, upstream) -> None:
        """Rows from the pages that arrived replace the table; the gap is reported."""
        await seed(orchestrator, "projects")
        upstream.collections["project.get"] = upstream.collections["project.get"][:1]
        upstream.failed_pages["project.get"] = [250]

        result = await orchestrator.sync_entity("projects")

        assert result.saved == 1
        assert result.failed_pages == [250]
        assert result.errors == ["Page at offset 250 failed"]
        assert result.as_dict()["error_count"] == 1
        assert ids(store, "projects") == [500]
        assert store.sync_status("projects")["status"] == "success"

    @pytest.mark.asyncio
    async def test_failed_pages_abort_when_complete_pages_required(
        self, orchestrator, store, upstream, settings
    ) -> None:
        """With complete pages required a partial collection never replaces a full one."""
        orchestrator.settings = settings.model_copy(update={"sync_require_complete_pages": True})
        await seed(orchestrator, "projects")
        upstream.collections["project.get"] = upstream.collections["project.get"][:1]
        upstream.failed_pages["project.get"] = [250]

        with pytest.raises(SyncFailed) as exc_info:
            await orchestrator.sync_entity("projects")

        assert exc_info.value.errors == ["Page at offset 250 failed"]
        assert ids(store, "projects") == [500, 501]

    @pytest.mark.asyncio
    async def test_deadline_reaches_the_fetch(self, orchestrator, upstream, settings) -> None:
        await orchestrator.sync_entity("employees", deadline=2.5)
        assert upstream.deadlines == [2.5]

        orchestrator.settings = settings.model_copy(update={"upstream_deadline": 7.0})
        await orchestrator.sync_entity("employees")
        assert upstream.deadlines == [2.5, 7.0]

    @pytest.mark.asyncio
    async def test_failure_does_not_invalidate_cache(self, orchestrator, upstream, data_cache) -> None:
        data_cache.set("projects_all", [{"id": 500}])
        upstream.errors["project.get"] = UpstreamError("bad filter", code=400)

        with pytest.raises(UpstreamError):
            await orchestrator.sync_entity("projects")

        assert data_cache.get("projects_all") is not None


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_committed_sync_clears_dependent_keys(self, orchestrator, data_cache) -> None:
        await seed(orchestrator, "employees")
        for key in ("hours_all", "hours_100", "employees_week_2024_10", "projects_all"):
            data_cache.set(key, 1)

        await orchestrator.sync_entity("hours")

        assert data_cache.get("hours_all") is None
        assert data_cache.get("hours_100") is None
        assert data_cache.get("employees_week_2024_10") is None
        assert data_cache.get("projects_all") is not None


class TestWindowedSync:
    """Tests for date-window and incremental syncs."""

    @pytest.mark.asyncio
    async def test_window_replaces_only_rows_inside(self, orchestrator, store, upstream) -> None:
        await seed(orchestrator, "employees", "hours")
        upstream.collections["hour.get"] = [gripp_hour(105, 1, "2024-03-05", 3)]
        window = DateWindow(date(2024, 3, 5), date(2024, 3, 6))

        result = await orchestrator.sync_entity("hours", window=window)

        assert result.saved == 1
        assert result.window == window
        assert ids(store, "hours") == [100, 102, 103, 104, 105]
        method, filters = upstream.calls[-1]
        assert method == "hour.get"
        assert filters == [Filter.between("hour.date", "2024-03-05", "2024-03-06")]

    @pytest.mark.asyncio
    async def test_window_unsupported(self, orchestrator) -> None:
        window = DateWindow(date(2024, 3, 5), date(2024, 3, 6))
        with pytest.raises(ValueError):
            await orchestrator.sync_entity("employees", window=window)

    @pytest.mark.asyncio
    async def test_incremental_uses_lookback_from_last_success(self, orchestrator, store) -> None:
        await seed(orchestrator, "employees")
        store.update_sync_status(
            "hours", "success", when=datetime(2024, 4, 10, 6, 0, tzinfo=timezone.utc)
        )

        result = await orchestrator.sync_entity("hours", incremental=True)

        assert result.window == DateWindow(date(2024, 4, 3), date(2024, 4, 15))

    @pytest.mark.asyncio
    async def test_incremental_without_history_is_full(self, orchestrator) -> None:
        await seed(orchestrator, "employees")
        result = await orchestrator.sync_entity("hours", incremental=True)
        assert result.window is None

    @pytest.mark.asyncio
    async def test_incremental_on_undated_entity_is_full(self, orchestrator, store) -> None:
        store.update_sync_status("projects", "success")
        result = await orchestrator.sync_entity("projects", incremental=True)
        assert result.window is None
        assert result.saved == 2

    @pytest.mark.asyncio
    async def test_incremental_status_read_runs_off_the_loop(
        self, orchestrator, store, monkeypatch
    ) -> None:
        await seed(orchestrator, "employees")
        loop_thread = threading.get_ident()
        readers = []
        original = store.sync_status

        def recording_status(*args, **kwargs):
            readers.append(threading.get_ident())
            return original(*args, **kwargs)

        monkeypatch.setattr(store, "sync_status", recording_status)
        await orchestrator.sync_entity("hours", incremental=True)

        assert readers
        assert loop_thread not in readers


class TestConcurrency:
    """At most one sync per entity type runs at a time."""

    @pytest.mark.asyncio
    async def test_second_sync_is_rejected_without_wait(self, orchestrator, upstream) -> None:
        upstream.gate = asyncio.Event()
        first = asyncio.create_task(orchestrator.sync_entity("employees"))
        while not upstream.calls:
            await asyncio.sleep(0.01)

        assert orchestrator.is_running("employees")
        assert not orchestrator.is_running("projects")
        with pytest.raises(SyncInProgressError):
            await orchestrator.sync_entity("employees", wait=False)

        upstream.gate.set()
        assert (await first).saved == 3
        assert not orchestrator.is_running("employees")

    @pytest.mark.asyncio
    async def test_waiting_sync_runs_after_the_first(self, orchestrator, upstream) -> None:
        upstream.gate = asyncio.Event()
        first = asyncio.create_task(orchestrator.sync_entity("employees"))
        second = asyncio.create_task(orchestrator.sync_entity("employees"))
        while not upstream.calls:
            await asyncio.sleep(0.01)
        assert len(upstream.calls) == 1

        upstream.gate.set()
        results = await asyncio.gather(first, second)

        assert [r.saved for r in results] == [3, 3]
        assert len(upstream.calls) == 2


class TestSyncAll:
    """Tests for multi-entity syncs."""

    @pytest.mark.asyncio
    async def test_runs_in_dependency_order(self, orchestrator, upstream, store) -> None:
        outcomes = await orchestrator.sync_all()

        assert list(outcomes) == SYNC_ORDER
        assert [method for method, _ in upstream.calls] == [
            "employee.get",
            "employmentcontract.get",
            "holiday.get",
            "hour.get",
            "absencerequest.get",
            "project.get",
            "invoice.get",
        ]
        assert store.count_rows("invoices") == 2

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_rest(self, orchestrator, upstream) -> None:
        upstream.errors["project.get"] = UpstreamError("denied", code=403)

        outcomes = await orchestrator.sync_all()

        assert isinstance(outcomes[EntityType.PROJECTS], UpstreamError)
        assert outcomes[EntityType.INVOICES].saved == 2

    @pytest.mark.asyncio
    async def test_subset_keeps_order(self, orchestrator) -> None:
        outcomes = await orchestrator.sync_all(["hours", "employees"])
        assert list(outcomes) == [EntityType.EMPLOYEES, EntityType.HOURS]
