"""Tests for the HTTP control surface."""
import pytest
from fastapi.testclient import TestClient

from conftest import FakeDiscovery, FakeExecutor, FakeTerminator, failed, make_exploded
from tomcat_launcher.main import create_app, pick_port
from tomcat_launcher.models import DiscoveredProcess


@pytest.fixture
def client(dev_loop):
    with TestClient(create_app(dev_loop)) as test_client:
        yield test_client


class TestConfigEndpoints:
    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "ok"

    def test_get_config_uses_setting_names(self, client, project):
        config = client.get("/api/config").json()["config"]
        assert config["PROJECT_PATH"] == str(project)
        assert config["APP_CONTEXT"] == "app"
        assert config["JPDA_ADDRESS"] == ""

    def test_update_config(self, client, dev_loop):
        response = client.post("/api/config", json={"key": "JPDA_ADDRESS", "value": "5005"})

        assert response.status_code == 200
        assert response.json()["config"]["JPDA_ADDRESS"] == "5005"
        assert dev_loop.status()["debug_port"] == 5005

    def test_update_config_rejects_unknown_key(self, client):
        response = client.post("/api/config", json={"key": "CATALINA_OPTS", "value": "x"})
        assert response.status_code == 400

    def test_update_config_rejects_unknown_scope(self, client):
        response = client.post("/api/config", json={"key": "JAVA_HOME", "value": "x", "scope": "global"})
        assert response.status_code == 400


class TestOperationEndpoints:
    def test_rebuild(self, client, dev_loop):
        dev_loop.builds.executor = FakeExecutor()

        body = client.post("/api/build/rebuild").json()

        assert body == {"status": "success", "message": "Exploded rebuild completed"}

    def test_failed_build_reports_error(self, client, dev_loop):
        dev_loop.builds.executor = FakeExecutor([failed(1)])

        body = client.post("/api/build/clean").json()

        assert body["status"] == "error"
        assert body["message"] == "Clean failed (exit code 1)"

    def test_unknown_build_verb(self, client):
        assert client.post("/api/build/deploy").status_code == 404

    def test_create_context(self, client, project, tomcat_home):
        make_exploded(project)

        body = client.post("/api/server/context").json()

        assert body["status"] == "success"
        assert (tomcat_home / "conf" / "Catalina" / "localhost" / "app.xml").exists()

    def test_sync_resources_without_build(self, client):
        body = client.post("/api/resources/sync").json()
        assert body["status"] == "error"
        assert body["message"].startswith("Failed to copy resources")

    def test_stop(self, client, dev_loop):
        dev_loop.server.discovery = FakeDiscovery([[DiscoveredProcess(pid="7")], []])
        dev_loop.server.terminator = FakeTerminator()

        body = client.post("/api/server/stop").json()

        assert body["status"] == "success"
        assert body["server"]["status"] == "Stopped"

    def test_start_without_script(self, client):
        body = client.post("/api/server/start").json()

        assert body["status"] == "error"
        assert body["server"]["status"] == "Error"

    def test_logs_and_notifications(self, client):
        client.post("/api/environment/setup")

        assert "Checking development environment..." in client.get("/api/logs").json()["logs"]
        notifications = client.get("/api/notifications").json()["notifications"]
        assert notifications[-1]["message"] == "Environment configured"
        assert notifications[-1]["level"] == "info"


def test_pick_port_prefers_requested_port(monkeypatch):
    monkeypatch.setattr("tomcat_launcher.main.is_port_available", lambda host, port: port != 9000)

    assert pick_port("127.0.0.1", 8765, explicit=False) == 8765
    assert pick_port("127.0.0.1", 9000, explicit=False) == 9001
    with pytest.raises(SystemExit):
        pick_port("127.0.0.1", 9000, explicit=True)
