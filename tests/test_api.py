import pytest
from fastapi.testclient import TestClient

from nextbus import main
from nextbus.arbiter import ArbitrationError
from nextbus.config import Settings
from nextbus.models import PointEstimate, RangeEstimate, Source, SourceResult
from nextbus.providers.mock import MockProvider
from nextbus.providers.xor import XorProvider


class StubService:
    def __init__(self, decision=None, error=None):
        self.decision = decision
        self.error = error
        self.calls = []

    async def get_arrivals(self, stop_id, line_id, force_secondary=False):
        self.calls.append((stop_id, line_id, force_secondary))
        if self.error is not None:
            raise self.error
        return self.decision


@pytest.fixture
def client():
    return TestClient(main.app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_arrivals_primary(client, monkeypatch):
    decision = SourceResult(
        source=Source.PRIMARY,
        estimates=[RangeEstimate(min=3, max=5), PointEstimate(minutes=12)],
    )
    stub = StubService(decision)
    monkeypatch.setattr(main, "service", stub)

    r = client.get("/arrivals", params={"stop": "PH1474", "service": "H09"})

    assert r.status_code == 200
    assert r.json() == {"estimates": [{"min": 3, "max": 5}, {"minutes": 12}], "source": "primary"}
    assert r.headers["X-Data-Source"] == "primary"
    assert r.headers["Cache-Control"] == "s-maxage=5, stale-while-revalidate=10"
    assert stub.calls == [("PH1474", "H09", False)]


def test_arrivals_secondary_tightens_cache(client, monkeypatch):
    decision = SourceResult(source=Source.SECONDARY, estimates=[PointEstimate(minutes=4)])
    monkeypatch.setattr(main, "service", StubService(decision))

    r = client.get("/arrivals")

    assert r.json() == {"estimates": [{"minutes": 4}], "source": "secondary"}
    assert r.headers["X-Data-Source"] == "secondary"
    assert r.headers["Cache-Control"] == "s-maxage=3, stale-while-revalidate=6"


def test_arrivals_defaults_and_force_flag(client, monkeypatch):
    stub = StubService(SourceResult.empty(Source.NONE))
    monkeypatch.setattr(main, "service", stub)

    r = client.get("/arrivals", params={"fg": "1"})
    client.get("/arrivals", params={"force_secondary": "0"})

    assert r.json() == {"estimates": [], "source": "none"}
    assert r.headers["X-Data-Source"] == "none"
    assert stub.calls == [
        (main.settings.default_stop, main.settings.default_line, True),
        (main.settings.default_stop, main.settings.default_line, False),
    ]


def test_arbitration_defect_is_500(client, monkeypatch):
    monkeypatch.setattr(main, "service", StubService(error=ArbitrationError("no decision has been made")))

    r = client.get("/arrivals")

    assert r.status_code == 500
    assert r.json() == {"error": "no decision has been made"}


def test_load_primary_by_name():
    assert isinstance(main.load_primary(Settings(primary_provider="mock")), MockProvider)

    provider = main.load_primary(Settings(primary_timeout=2.0, provider_opts={"base_url": "http://localhost:9000/"}))
    assert isinstance(provider, XorProvider)
    assert provider.timeout == 2.0
    assert provider.base_url == "http://localhost:9000"


def test_load_primary_unknown_module():
    with pytest.raises(RuntimeError):
        main.load_primary(Settings(primary_provider="nope"))


@pytest.mark.parametrize("name", ["google", "base"])
def test_load_primary_rejects_non_primary_modules(name):
    with pytest.raises(RuntimeError):
        main.load_primary(Settings(primary_provider=name))


def test_load_primary_passes_mock_options():
    opts = {"payload": {"buses": [{"min_arrival_time": 1, "max_arrival_time": 2}]}, "delay": 0.5}
    provider = main.load_primary(Settings(primary_provider=" Mock ", provider_opts=opts))
    assert isinstance(provider, MockProvider)
    assert provider.payload == opts["payload"]
    assert provider.delay == 0.5


def test_end_to_end_with_mock_primary(client, monkeypatch):
    monkeypatch.setattr(main, "service", main.build_service(Settings(primary_provider="mock")))

    r = client.get("/arrivals", params={"stop": "ph1474", "service": "h09"})

    assert r.json() == {"estimates": [{"min": 3, "max": 7}, {"minutes": 18}], "source": "primary"}
