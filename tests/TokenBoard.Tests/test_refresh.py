"""Tests for the single-flight refresh service and the scheduler."""
import logging
import threading
import time
from dataclasses import replace

import pytest

from api.explorer_client import ExplorerApiError
from db.tokens_repo import TokensRepo
from pipeline.errors import RefreshTimeoutError
from pipeline.refresh import TokenRefreshService
from pipeline.scheduler import RefreshScheduler

from conftest import FakeFetcher, raw_token


def _count(db):
    with db.session_scope() as session:
        return TokensRepo().count(session, "mantle")


@pytest.fixture
def make_service(db, sync_config):
    services = []

    def _make(fetcher, **overrides):
        service = TokenRefreshService(db, fetcher, replace(sync_config, **overrides))
        services.append(service)
        return service

    yield _make
    for service in services:
        service.shutdown(wait=True)


def test_run_pipeline_persists_ranked_tokens(db, make_service, single_page):
    service = make_service(FakeFetcher(single_page))

    result = service.run_pipeline()

    assert result.fetched == 4
    assert result.ranked == 2
    assert result.persisted == 2
    assert _count(db) == 2
    assert service.last_result is result
    assert service.status()["lastRefresh"]["persisted"] == 2


def test_refresh_twice_with_same_data_keeps_row_count(db, make_service, single_page):
    service = make_service(FakeFetcher(single_page))

    service.refresh_if_idle()
    service.refresh_if_idle()

    assert _count(db) == 2


def test_fetch_failure_leaves_existing_rows_untouched(db, make_service, single_page):
    make_service(FakeFetcher(single_page)).run_pipeline()
    failing = make_service(FakeFetcher(single_page, error=ExplorerApiError("down")))

    with pytest.raises(ExplorerApiError):
        failing.run_pipeline()

    assert _count(db) == 2
    assert failing.last_error == "down"


def test_two_triggers_run_one_pipeline(db, make_service, single_page):
    fetcher = FakeFetcher(single_page)
    fetcher.release.clear()
    service = make_service(fetcher)

    first, started_first = service.trigger()
    assert fetcher.entered.wait(timeout=5)
    second, started_second = service.trigger()

    assert started_first is True
    assert started_second is False
    assert second is first
    assert service.is_running
    assert service.refresh_if_idle() is None

    fetcher.release.set()
    first.result(timeout=5)
    assert fetcher.calls == 1
    assert not service.is_running


def test_cache_miss_triggers_exactly_one_refresh(db, make_service, single_page):
    fetcher = FakeFetcher(single_page)
    service = make_service(fetcher)

    result = service.ensure_populated()

    assert result is not None
    assert fetcher.calls == 1
    assert _count(db) == 2


def test_populated_cache_does_not_refresh(db, make_service, single_page):
    fetcher = FakeFetcher(single_page)
    service = make_service(fetcher)
    service.run_pipeline()

    assert service.ensure_populated() is None
    assert fetcher.calls == 1


def test_concurrent_cache_misses_share_one_refresh(db, make_service, single_page):
    fetcher = FakeFetcher(single_page)
    fetcher.release.clear()
    service = make_service(fetcher)
    errors = []

    def read():
        try:
            service.ensure_populated(timeout=5)
        except Exception as exc:  # pragma: no cover - surfaced by the assert below
            errors.append(exc)

    readers = [threading.Thread(target=read) for _ in range(3)]
    for t in readers:
        t.start()
    assert fetcher.entered.wait(timeout=5)
    time.sleep(0.1)
    fetcher.release.set()
    for t in readers:
        t.join(timeout=5)

    assert errors == []
    assert fetcher.calls == 1
    assert _count(db) == 2


def test_cache_miss_times_out_but_refresh_continues(db, make_service, single_page):
    fetcher = FakeFetcher(single_page)
    fetcher.release.clear()
    service = make_service(fetcher)

    with pytest.raises(RefreshTimeoutError):
        service.ensure_populated(timeout=0.05)

    fetcher.release.set()
    for _ in range(100):
        if not service.is_running:
            break
        time.sleep(0.05)
    assert _count(db) == 2


def test_cache_miss_surfaces_fetch_error(db, make_service, single_page):
    service = make_service(FakeFetcher(single_page, error=ExplorerApiError("down")))

    with pytest.raises(ExplorerApiError):
        service.ensure_populated()


def test_scheduler_tick_skips_when_run_in_flight(db, make_service, single_page):
    fetcher = FakeFetcher(single_page)
    fetcher.release.clear()
    service = make_service(fetcher)
    future, _ = service.trigger()
    assert fetcher.entered.wait(timeout=5)

    RefreshScheduler(service, interval_seconds=60).tick()

    fetcher.release.set()
    future.result(timeout=5)
    assert fetcher.calls == 1


def test_scheduler_tick_failure_is_logged_once_as_error(db, make_service, single_page, caplog):
    service = make_service(FakeFetcher(single_page, error=ExplorerApiError("down")))

    with caplog.at_level(logging.INFO):
        RefreshScheduler(service, interval_seconds=60).tick()

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert [r.getMessage() for r in errors] == ["Token refresh failed"]
    assert errors[0].exc_info is not None
    assert "Scheduled token refresh failed, retrying in 60s" in caplog.text
    assert _count(db) == 0


def test_scheduler_runs_on_interval_and_stops(db, make_service, single_page):
    fetcher = FakeFetcher(single_page)
    service = make_service(fetcher)
    scheduler = RefreshScheduler(service, interval_seconds=0.05)

    scheduler.start()
    scheduler.start()
    deadline = time.monotonic() + 5
    while fetcher.calls < 2 and time.monotonic() < deadline:
        time.sleep(0.02)
    scheduler.stop()

    assert fetcher.calls >= 2
    assert not scheduler.is_running
    assert _count(db) == 2


def test_scheduler_rejects_non_positive_interval(make_service, single_page):
    with pytest.raises(ValueError):
        RefreshScheduler(make_service(FakeFetcher(single_page)), interval_seconds=0)


@pytest.mark.parametrize("on_startup", [True, False])
def test_scheduler_from_config_follows_startup_flag(make_service, single_page, on_startup):
    service = make_service(FakeFetcher(single_page), refresh_on_startup=on_startup, refresh_interval_seconds=90)

    scheduler = RefreshScheduler.from_config(service, service.config)

    assert scheduler.run_on_start is on_startup
    assert scheduler.interval_seconds == 90


def test_scheduler_from_config_skips_startup_tick_when_disabled(make_service, single_page):
    fetcher = FakeFetcher(single_page)
    service = make_service(fetcher, refresh_on_startup=False, refresh_interval_seconds=60)
    scheduler = RefreshScheduler.from_config(service, service.config)

    scheduler.start()
    time.sleep(0.1)
    scheduler.stop()

    assert fetcher.calls == 0
