"""
Tests for the ingestion path.
"""

import pytest

from core.exceptions import InvalidEventError
from ingestion.service import IngestionService, delta_from_block_hash, last_hash_digit

from tests.helpers import BASE_MS


@pytest.fixture
def ingestion(ledger):
    return IngestionService(ledger)


class TestDeltaRule:

    @pytest.mark.parametrize("block_hash,digit", [
        ("0xabc123", 3),
        ("0x12fe", 2),
        ("0X9abcdef", 9),
        ("abc", 0),
        ("0x", 0),
    ])
    def test_last_hash_digit(self, block_hash, digit):
        assert last_hash_digit(block_hash) == digit

    def test_odd_digit_is_negative(self):
        assert delta_from_block_hash("0xff7") == -1

    def test_even_digit_is_positive(self):
        assert delta_from_block_hash("0xff8") == 1
        assert delta_from_block_hash("0xffff") == 1


class TestIngestionService:

    def test_duplicate_delivery_is_noop(self, ingestion, ledger):
        assert ingestion.submit_score_event(1, BASE_MS, 1) is True
        assert ingestion.submit_score_event(1, BASE_MS, 1) is False

        assert ledger.count() == 1
        assert ledger.latest().cumulative_score == 1
        assert ingestion.status().duplicates == 1

    def test_stale_event_is_noop(self, ingestion, ledger):
        ingestion.submit_score_event(5, BASE_MS, 1)

        assert ingestion.submit_score_event(3, BASE_MS, -1) is False
        assert ingestion.last_processed_sequence == 5

    def test_invalid_delta_propagates(self, ingestion):
        with pytest.raises(InvalidEventError):
            ingestion.submit_score_event(1, BASE_MS, 0)

    def test_submit_block(self, ingestion, ledger):
        ingestion.submit_block(100, "0xabc4", BASE_MS)
        ingestion.submit_block(101, "0xabc7", BASE_MS + 3000)

        assert [e.delta for e in ledger.newest(2)] == [1, -1]
        status = ingestion.status()
        assert status.applied == 2
        assert status.last_processed_sequence == 101
