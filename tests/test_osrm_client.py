import pytest
import requests

from routing.osrm_client import OSRMClient, OSRMError


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        return self.payload


@pytest.fixture
def client():
    return OSRMClient(base_url="http://osrm.test/", profile="driving", timeout=3)


def test_compute_route_formats_lon_lat_and_flips_geometry(client, monkeypatch):
    calls = {}

    def fake_get(url, params=None, timeout=None):
        calls.update(url=url, params=params, timeout=timeout)
        return FakeResponse({
            "code": "Ok",
            "routes": [{
                "distance": 12500.0,
                "duration": 900.0,
                "geometry": {"type": "LineString", "coordinates": [[101.6067, 3.1073], [101.72, 3.16]]},
            }],
        })

    monkeypatch.setattr(requests, "get", fake_get)
    route = client.compute_route([(3.1073, 101.6067), (3.16, 101.72)])

    assert calls["url"] == "http://osrm.test/route/v1/driving/101.6067,3.1073;101.72,3.16"
    assert calls["params"]["geometries"] == "geojson"
    assert calls["timeout"] == 3
    assert route["distance"] == 12500.0
    assert route["duration"] == 900.0
    assert route["geometry"] == [(3.1073, 101.6067), (3.16, 101.72)]


def test_no_route_raises(client, monkeypatch):
    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse({"code": "NoRoute", "message": "Impossible route"}))
    with pytest.raises(OSRMError, match="Impossible route"):
        client.compute_route([(3.1, 101.6), (3.2, 101.7)])


def test_timeout_raises_osrm_error(client, monkeypatch):
    def fake_get(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(requests, "get", fake_get)
    with pytest.raises(OSRMError, match="timed out"):
        client.compute_route([(3.1, 101.6), (3.2, 101.7)])


def test_invalid_json_raises_osrm_error(client, monkeypatch):
    class BadResponse:
        def json(self):
            raise ValueError("not json")

    monkeypatch.setattr(requests, "get", lambda *a, **k: BadResponse())
    with pytest.raises(OSRMError):
        client.compute_route([(3.1, 101.6), (3.2, 101.7)])


def test_requires_two_coordinates(client):
    with pytest.raises(ValueError):
        client.compute_route([(3.1, 101.6)])


@pytest.mark.parametrize("payload", [
    {"code": "Ok", "routes": [{"geometry": {"coordinates": []}}]},
    {"code": "Ok", "routes": [{"distance": "far", "duration": 900.0}]},
    {"code": "Ok", "routes": [{"distance": 10.0, "duration": 9.0, "geometry": {"coordinates": [[101.6]]}}]},
    {"code": "Ok", "routes": ["not a route"]},
])
def test_malformed_route_raises_osrm_error(client, monkeypatch, payload):
    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(payload))
    with pytest.raises(OSRMError, match="Malformed"):
        client.compute_route([(3.1, 101.6), (3.2, 101.7)])


def test_non_object_payload_raises_osrm_error(client, monkeypatch):
    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(["Ok"]))
    with pytest.raises(OSRMError, match="unexpected payload"):
        client.compute_route([(3.1, 101.6), (3.2, 101.7)])
