"""Tests for batch construction."""

from datetime import datetime

import pytest

from scim_migration.migration.batcher import make_batches, make_run_prefix
from tests.conftest import make_credentials


class TestMakeBatches:
    """Partitioning credentials into batches."""

    def test_250_records_make_three_batches(self):
        creds = make_credentials(250)

        batches = make_batches(creds, capacity=100, prefix="run")

        assert [len(b) for b in batches] == [100, 100, 50]
        assert [b.bulk_id for b in batches] == ["run-0", "run-1", "run-2"]

    def test_concatenation_preserves_input_order(self):
        creds = make_credentials(37)

        batches = make_batches(creds, capacity=10, prefix="run")

        flattened = [cred for batch in batches for cred in batch.credentials]
        assert flattened == creds

    @pytest.mark.parametrize(
        "count,capacity", [(1, 100), (99, 100), (100, 100), (101, 100), (7, 3)]
    )
    def test_batch_count_is_ceiling(self, count, capacity):
        batches = make_batches(make_credentials(count), capacity=capacity, prefix="p")

        assert len(batches) == -(-count // capacity)
        assert all(len(b) == capacity for b in batches[:-1])
        assert 1 <= len(batches[-1]) <= capacity

    def test_empty_input_makes_no_batches(self):
        assert make_batches([], capacity=100, prefix="run") == []

    def test_batch_ids_are_unique(self):
        batches = make_batches(make_credentials(1000), capacity=7, prefix="run")

        ids = [b.bulk_id for b in batches]
        assert len(ids) == len(set(ids))

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_non_positive_capacity_rejected(self, capacity):
        with pytest.raises(ValueError):
            make_batches(make_credentials(3), capacity=capacity, prefix="run")

    def test_default_prefix_is_generated(self):
        batches = make_batches(make_credentials(2), capacity=1)

        prefix = batches[0].bulk_id.rsplit("-", 1)[0]
        assert batches[1].bulk_id == f"{prefix}-1"


class TestRunPrefix:
    def test_prefix_from_start_time(self):
        assert make_run_prefix(datetime(2024, 3, 5, 14, 7, 9)) == "2024-3-5-140709"
