import pytest

from domain.errors import NoRouteFound, UpstreamFailure
from domain.models import Coordinate, RouteRequest
from services import routing

REQUEST = RouteRequest(
    origin=Coordinate(27.7172, 85.3240),
    destination=Coordinate(27.7200, 85.3300),
)


def _resolver():
    return routing.RouteResolver(base_url="https://osrm.test/")


def test_route_transposes_lnglat_to_latlng(monkeypatch):
    captured = {}

    def fake_fetch(service, method, url, **kwargs):
        captured.update(service=service, url=url, params=kwargs.get("params"))
        return {
            "code": "Ok",
            "routes": [
                {
                    "distance": 812.4,
                    "duration": 584.9,
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [[85.3240, 27.7172], [85.3271, 27.7185], [85.3300, 27.7200]],
                    },
                }
            ],
        }

    monkeypatch.setattr(routing, "fetch_json", fake_fetch)

    path = _resolver().resolve_route(REQUEST)

    assert captured["service"] == "osrm"
    assert captured["url"] == "https://osrm.test/route/v1/walking/85.324,27.7172;85.33,27.72"
    assert captured["params"] == {"geometries": "geojson", "overview": "full"}
    assert list(path) == [
        Coordinate(27.7172, 85.3240),
        Coordinate(27.7185, 85.3271),
        Coordinate(27.7200, 85.3300),
    ]
    assert path[0].latitude == 27.7172
    assert path.as_latlngs()[-1] == (27.72, 85.33)
    assert path.distance_m == pytest.approx(812.4)
    assert path.duration_s == pytest.approx(584.9)


def test_route_code_not_ok_is_no_route(monkeypatch):
    monkeypatch.setattr(
        routing, "fetch_json", lambda *a, **k: {"code": "NoRoute", "message": "Impossible route"}
    )

    with pytest.raises(NoRouteFound) as info:
        _resolver().resolve_route(REQUEST)
    assert info.value.code == "NoRoute"


def test_route_ok_with_empty_routes_is_no_route(monkeypatch):
    monkeypatch.setattr(routing, "fetch_json", lambda *a, **k: {"code": "Ok", "routes": []})

    with pytest.raises(NoRouteFound):
        _resolver().resolve_route(REQUEST)


def test_route_with_single_point_is_no_route(monkeypatch):
    payload = {"code": "Ok", "routes": [{"geometry": {"coordinates": [[85.3240, 27.7172]]}}]}
    monkeypatch.setattr(routing, "fetch_json", lambda *a, **k: payload)

    with pytest.raises(NoRouteFound):
        _resolver().resolve_route(REQUEST)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"code": "Ok", "routes": [{"geometry": "encoded-polyline"}]},
        {"code": "Ok", "routes": [{"geometry": {"coordinates": [[85.3], [85.33, 27.72]]}}]},
        {"code": "Ok", "routes": [{"geometry": {"coordinates": [[85.3, 127.7], [85.33, 27.72]]}}]},
    ],
)
def test_route_malformed_payload_is_upstream_failure(monkeypatch, payload):
    monkeypatch.setattr(routing, "fetch_json", lambda *a, **k: payload)

    with pytest.raises(UpstreamFailure):
        _resolver().resolve_route(REQUEST)


def test_route_transport_failure_propagates(monkeypatch):
    def failing_fetch(*args, **kwargs):
        raise UpstreamFailure("osrm", "request failed: connection reset")

    monkeypatch.setattr(routing, "fetch_json", failing_fetch)

    with pytest.raises(UpstreamFailure):
        _resolver().resolve_route(REQUEST)
