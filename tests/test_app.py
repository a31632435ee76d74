"""
Tests for application wiring.
"""

import pytest

from app import build_system, create_parser
from core.config import AppConfig, DatabaseConfig
from ledger.store import InMemoryScoreEventStore, SqlScoreEventStore

from tests.helpers import BASE_MS


def test_build_system_with_memory_store(clock):
    system = build_system(AppConfig(), clock, store=InMemoryScoreEventStore())

    assert system.database is None
    assert system.ingestion.submit_block(1, "0xa2", BASE_MS) is True
    assert system.query.get_stats("1day").success
    assert "ledger-cleanup" in system.scheduler.job_names


def test_build_system_with_sql_store(clock):
    config = AppConfig(database=DatabaseConfig(url="sqlite://"))

    system = build_system(config, clock)

    assert isinstance(system.ledger.store, SqlScoreEventStore)
    system.ingestion.submit_score_event(1, BASE_MS, -1)
    assert system.ledger.latest().cumulative_score == -1
    system.database.dispose()


@pytest.mark.asyncio
async def test_lifespan_starts_and_stops_services(clock):
    system = build_system(AppConfig(), clock, store=InMemoryScoreEventStore())

    async with system.lifespan():
        assert system.publisher.status().running
        assert all(s.started for s in system.scheduler.status().values())

    assert not system.publisher.status().running
    assert not any(s.started for s in system.scheduler.status().values())


def test_parser_flags():
    args = create_parser().parse_args(["--serve", "--log-level", "DEBUG"])

    assert args.serve is True
    assert args.log_level == "DEBUG"
    assert args.config is None
