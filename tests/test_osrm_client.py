import httpx
import pytest

from demandscope.config.settings import get_settings
from demandscope.core.rate_limit import TokenBucketRateLimiter
from demandscope.domain.models import GeoPoint
from demandscope.ingestion.osrm_client import OsrmClient, TravelEstimateError

START = GeoPoint(lat=25.0478, lng=121.5170)
END = GeoPoint(lat=25.0330, lng=121.5654)


def _client() -> OsrmClient:
    settings = get_settings()
    routing = settings.routing.model_copy(update={"base_url": "http://osrm.test/route/v1/", "max_rpm": 0})
    return OsrmClient(settings.model_copy(update={"routing": routing}))


def test_estimate_parses_first_route(monkeypatch):
    seen = {}

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=10):  # noqa: ARG001
        seen["url"] = url
        seen["params"] = params
        return {"code": "Ok", "routes": [{"distance": 5321.4, "duration": 612.0}, {"distance": 1, "duration": 1}]}

    monkeypatch.setattr("demandscope.ingestion.osrm_client.get_json", fake_get_json)
    est = _client().estimate(START, END, "walking")

    assert est.distance_m == 5321.4
    assert est.duration_seconds == 612.0
    assert seen["url"] == "http://osrm.test/route/v1/foot/121.517000,25.047800;121.565400,25.033000"
    assert seen["params"] == {"overview": "false", "steps": "false"}


def test_bus_profile_uses_driving(monkeypatch):
    urls = []

    def fake_get_json(url, **_kwargs):
        urls.append(url)
        return {"code": "Ok", "routes": [{"distance": 1, "duration": 2}]}

    monkeypatch.setattr("demandscope.ingestion.osrm_client.get_json", fake_get_json)
    _client().estimate(START, END, "bus")
    assert "/driving/" in urls[0]


def test_no_route_is_an_estimate_error(monkeypatch):
    monkeypatch.setattr(
        "demandscope.ingestion.osrm_client.get_json",
        lambda *_a, **_k: {"code": "Ok", "routes": []},
    )
    with pytest.raises(TravelEstimateError, match="Route not found"):
        _client().estimate(START, END)


def test_http_400_body_code_is_reported(monkeypatch):
    def fake_get_json(url, **_kwargs):
        request = httpx.Request("GET", url)
        response = httpx.Response(400, request=request, json={"code": "NoRoute", "message": "Impossible route"})
        raise httpx.HTTPStatusError("400", request=request, response=response)

    monkeypatch.setattr("demandscope.ingestion.osrm_client.get_json", fake_get_json)
    with pytest.raises(TravelEstimateError, match="NoRoute"):
        _client().estimate(START, END)


def test_server_error_and_transport_error_are_wrapped(monkeypatch):
    def server_error(url, **_kwargs):
        request = httpx.Request("GET", url)
        raise httpx.HTTPStatusError("503", request=request, response=httpx.Response(503, request=request))

    monkeypatch.setattr("demandscope.ingestion.osrm_client.get_json", server_error)
    with pytest.raises(TravelEstimateError, match="status=503"):
        _client().estimate(START, END)

    def connect_error(url, **_kwargs):
        raise httpx.ConnectError("connection refused", request=httpx.Request("GET", url))

    monkeypatch.setattr("demandscope.ingestion.osrm_client.get_json", connect_error)
    with pytest.raises(TravelEstimateError):
        _client().estimate(START, END)


def test_malformed_route_is_an_estimate_error(monkeypatch):
    monkeypatch.setattr(
        "demandscope.ingestion.osrm_client.get_json",
        lambda *_a, **_k: {"code": "Ok", "routes": [{"distance": "far"}]},
    )
    with pytest.raises(TravelEstimateError, match="Malformed"):
        _client().estimate(START, END)


def test_rate_limiter_is_consulted(monkeypatch):
    class CountingLimiter(TokenBucketRateLimiter):
        acquired = 0

        def acquire(self, tokens: float = 1.0) -> None:
            CountingLimiter.acquired += 1

    monkeypatch.setattr(
        "demandscope.ingestion.osrm_client.get_json",
        lambda *_a, **_k: {"code": "Ok", "routes": [{"distance": 1, "duration": 2}]},
    )
    client = _client()
    client.set_rate_limiter(CountingLimiter(max_per_minute=60))
    client.estimate(START, END)
    client.estimate(START, END)
    assert CountingLimiter.acquired == 2


def test_token_bucket_reports_wait_when_empty():
    limiter = TokenBucketRateLimiter(max_per_minute=60, burst=1)
    assert limiter.try_acquire() == 0.0
    assert limiter.try_acquire() > 0
