"""
Linear-scan similarity search ordering.
"""

import numpy as np

from groundstream.vector.index import LinearScanSearch
from groundstream.vector.types import VectorRecord


def _records(*vectors):
    return [VectorRecord(id=i + 1, vector=np.array(v, dtype=np.float32)) for i, v in enumerate(vectors)]


def test_results_sorted_by_score():
    search = LinearScanSearch()
    candidates = _records([0.0, 1.0], [1.0, 0.0], [1.0, 1.0])

    results = search.search(np.array([1.0, 0.0]), candidates, top_k=3)

    assert [r.id for r in results] == [2, 3, 1]
    assert results[0].score > results[1].score > results[2].score


def test_ties_broken_by_ascending_id():
    search = LinearScanSearch()
    candidates = [
        VectorRecord(id=7, vector=np.array([1.0, 0.0])),
        VectorRecord(id=3, vector=np.array([1.0, 0.0])),
        VectorRecord(id=5, vector=np.array([1.0, 0.0])),
    ]

    results = search.search(np.array([1.0, 0.0]), candidates, top_k=3)

    assert [r.id for r in results] == [3, 5, 7]


def test_top_k_limits_results():
    search = LinearScanSearch()
    candidates = _records([1, 0], [0, 1], [1, 1], [-1, 0])

    assert len(search.search(np.array([1.0, 0.0]), candidates, top_k=2)) == 2
    assert search.search(np.array([1.0, 0.0]), candidates, top_k=0) == []


def test_no_candidates():
    assert LinearScanSearch().search(np.array([1.0]), [], top_k=5) == []


def test_order_independent_of_scan_order():
    search = LinearScanSearch()
    candidates = _records([0.3, 0.7], [0.9, 0.1], [0.5, 0.5])

    forward = search.search(np.array([1.0, 0.2]), candidates, top_k=3)
    backward = search.search(np.array([1.0, 0.2]), list(reversed(candidates)), top_k=3)

    assert [r.id for r in forward] == [r.id for r in backward]
