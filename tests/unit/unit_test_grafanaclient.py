from typing import Any, Dict, List

import pytest
import requests

from dashtransporter import grafanaclient
from dashtransporter.config import Environment
from dashtransporter.exceptions import TransportError, UpstreamError
from dashtransporter.grafanaclient import GrafanaClient


class StubResponse:
    def __init__(self, status_code: int, text: str = "{}") -> None:
        self.status_code = status_code
        self.text = text


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path, monkeypatch):
    # GrafanaClient creates ./logs on construction
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def recorded(monkeypatch) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    def fake_get(url, **kwargs):
        calls.append({"method": "GET", "url": url, **kwargs})
        return StubResponse(200)

    def fake_post(url, **kwargs):
        calls.append({"method": "POST", "url": url, **kwargs})
        return StubResponse(409, '{"message":"conflict"}')

    monkeypatch.setattr(grafanaclient.requests, "get", fake_get)
    monkeypatch.setattr(grafanaclient.requests, "post", fake_post)
    return calls


def make_client(**kwargs) -> GrafanaClient:
    return GrafanaClient(url="http://grafana:3000/", user="admin", password="secret", **kwargs)


def test_direct_connection_requires_all_credentials() -> None:
    with pytest.raises(ValueError):
        GrafanaClient(url="http://grafana", user="admin")


def test_yaml_config_is_loaded(tmp_path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("url: http://grafana-hml\nuser: viewer\npassword: pw\norg_id: 3\ntimeout: 5\n")

    client = GrafanaClient(config_file=str(config_file))

    assert client.base_url == "http://grafana-hml"
    assert client.auth == ("viewer", "pw")
    assert client.headers["X-Grafana-Org-Id"] == "3"
    assert client.timeout == 5


def test_from_environment_validates_environment() -> None:
    environment = Environment(id="dev", name="Grafana DEV", url="http://dev", user="admin", password="")

    with pytest.raises(ValueError, match="missing PASSWORD"):
        GrafanaClient.from_environment(environment)


def test_get_sends_basic_auth_org_header_and_timeout(recorded) -> None:
    client = make_client(org_id="2", timeout=7)

    response = client.get("/api/search", params={"type": "dash-db"})

    assert response.status_code == 200
    call = recorded[0]
    assert call["url"] == "http://grafana:3000/api/search"
    assert call["auth"] == ("admin", "secret")
    assert call["params"] == {"type": "dash-db"}
    assert call["headers"]["X-Grafana-Org-Id"] == "2"
    assert call["timeout"] == 7
    assert call["verify"] is True


def test_non_success_status_is_returned_not_raised(recorded) -> None:
    client = make_client()

    response = client.post("/api/dashboards/db", data={"dashboard": {}})

    assert response.status_code == 409
    assert recorded[0]["json"] == {"dashboard": {}}


def test_connection_failure_raises_transport_error(monkeypatch) -> None:
    def refuse(url, **kwargs):
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(grafanaclient.requests, "get", refuse)
    client = make_client()

    with pytest.raises(TransportError, match="connection refused"):
        client.get("/api/health")


def test_timeout_raises_upstream_error(monkeypatch) -> None:
    def slow(url, **kwargs):
        raise requests.exceptions.ReadTimeout("read timed out")

    monkeypatch.setattr(grafanaclient.requests, "post", slow)
    client = make_client(timeout=1)

    with pytest.raises(UpstreamError) as excinfo:
        client.post("/api/dashboards/db", data={})

    assert excinfo.value.status_code is None
    assert "timed out" in str(excinfo.value)


def test_check_response_and_decode_json() -> None:
    class JsonResponse(StubResponse):
        def __init__(self, status_code, payload, text="") -> None:
            super().__init__(status_code, text)
            self._payload = payload

        def json(self):
            return self._payload

    with pytest.raises(UpstreamError, match="get perms grafana api 500: boom"):
        grafanaclient.check_response(StubResponse(500, "boom"), context="get perms grafana api")

    assert grafanaclient.decode_json(JsonResponse(200, [1]), "list", expected=list) == [1]
    with pytest.raises(grafanaclient.DecodeError, match="expected dict, got list"):
        grafanaclient.decode_json(JsonResponse(200, [1]), "dashboard")
