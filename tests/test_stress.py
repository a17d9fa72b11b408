"""
Small runs of the reservation stress harness; the full run is python -m testing.stress_test.
"""

from __future__ import annotations

import pytest

from testing.stress_test import percentile, run_stress


def test_percentile():
    values = [1.0, 2.0, 3.0, 4.0]
    assert percentile([], 50) == 0.0
    assert percentile(values, 0) == 1.0
    assert percentile(values, 100) == 4.0
    assert percentile(values, 50) == pytest.approx(2.5)


@pytest.mark.parametrize("store_kind, concurrency", [("memory", 16), ("sqlite", 4)])
def test_concurrent_mints_hold_invariants(store_kind, concurrency):
    results = run_stress(
        num_addresses=4,
        num_requests=120,
        ids_per_address=5,
        concurrency=concurrency,
        store_kind=store_kind,
    )
    assert results["errors"] == 0
    assert results["violations"] == []
    assert results["completed"] == 120
    # five request ids per address against a cap of three
    assert 0 < results["submissions"] <= 4 * 3
