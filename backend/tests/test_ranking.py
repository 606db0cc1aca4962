import random

from domain.models import Coordinate, PlaceCandidate
from services.geo_distance import haversine_km
from services.ranking import rank

ORIGIN = Coordinate(27.7172, 85.3240)


def _cand(cid, lat=None, lon=None, name=None):
    coord = Coordinate(lat, lon) if lat is not None else None
    return PlaceCandidate(id=str(cid), name=name or f"Place {cid}", coordinate=coord)


def test_rank_orders_by_distance_with_two_decimal_display():
    candidates = [_cand(1, 27.72, 85.33), _cand(2, 27.70, 85.30)]

    ranked = rank(ORIGIN, candidates)

    assert [r.id for r in ranked] == ["1", "2"]
    d1 = haversine_km(ORIGIN, Coordinate(27.72, 85.33))
    d2 = haversine_km(ORIGIN, Coordinate(27.70, 85.30))
    assert 0.6 < d1 < 0.75
    assert 2.9 < d2 < 3.2
    assert ranked[0].display_distance == f"{d1:.2f} km"
    assert ranked[1].display_distance == f"{d2:.2f} km"
    assert ranked[0].distance_km == d1


def test_rank_puts_geometrically_closer_first_regardless_of_input_order():
    near = _cand("near", 27.7173, 85.3241)
    far = _cand("far", 27.80, 85.40)
    assert [r.id for r in rank(ORIGIN, [far, near])] == ["near", "far"]


def test_rank_output_is_sorted_for_shuffled_input():
    rng = random.Random(7)
    candidates = [
        _cand(i, 27.7172 + rng.uniform(-0.02, 0.02), 85.3240 + rng.uniform(-0.02, 0.02))
        for i in range(40)
    ]
    rng.shuffle(candidates)

    ranked = rank(ORIGIN, candidates, limit=40)

    distances = [r.distance_km for r in ranked]
    assert distances == sorted(distances)
    assert len(ranked) == 40


def test_rank_truncates_to_limit():
    candidates = [_cand(i, 27.7 + i * 0.001, 85.3) for i in range(25)]
    assert len(rank(ORIGIN, candidates, limit=10)) == 10
    assert len(rank(ORIGIN, candidates)) == 10
    assert len(rank(ORIGIN, candidates[:4], limit=10)) == 4


def test_rank_ties_keep_upstream_order():
    a = _cand("a", 27.73, 85.33)
    b = _cand("b", 27.73, 85.33)
    c = _cand("c", 27.73, 85.33)
    assert [r.id for r in rank(ORIGIN, [b, a, c])] == ["b", "a", "c"]


def test_rank_skips_candidates_without_coordinates():
    ranked = rank(ORIGIN, [_cand("x"), _cand("y", 27.72, 85.33)])
    assert [r.id for r in ranked] == ["y"]


def test_rank_empty_input_is_empty_output():
    assert rank(ORIGIN, []) == []
