"""Tests for the YAML settings store."""
import pytest
import yaml

from tomcat_launcher.config import ConfigManager
from tomcat_launcher.models import Configuration


@pytest.fixture
def manager(tmp_path):
    return ConfigManager(workspace=str(tmp_path / "ws"), user_settings_path=str(tmp_path / "user.yaml"))


class TestConfigManager:
    def test_get_default_when_nothing_saved(self, manager):
        assert manager.get("TOMCAT_HOME", "/default") == "/default"

    def test_set_writes_workspace_file(self, manager, tmp_path):
        manager.set("TOMCAT_HOME", "/opt/tomcat")

        with open(tmp_path / "ws" / ".tomcat-launcher.yaml", encoding="utf-8") as f:
            assert yaml.safe_load(f) == {"TOMCAT_HOME": "/opt/tomcat"}
        assert manager.get("TOMCAT_HOME") == "/opt/tomcat"

    def test_workspace_overrides_user(self, manager):
        manager.set("MAVEN_HOME", "/user/maven", scope="user")
        assert manager.get("MAVEN_HOME") == "/user/maven"

        manager.set("MAVEN_HOME", "/ws/maven", scope="workspace")
        assert manager.get("MAVEN_HOME") == "/ws/maven"

    def test_unknown_scope(self, manager):
        with pytest.raises(ValueError):
            manager.set("MAVEN_HOME", "/x", scope="global")

    def test_unknown_key(self, manager):
        with pytest.raises(ValueError):
            manager.get("NOT_A_SETTING")

    def test_malformed_file_is_ignored(self, manager, tmp_path):
        path = tmp_path / "ws" / ".tomcat-launcher.yaml"
        path.parent.mkdir(parents=True)
        path.write_text("- just\n- a list\n", encoding="utf-8")

        assert manager.get("APP_CONTEXT", "fallback") == "fallback"

    def test_load_configuration(self, manager):
        manager.set("PROJECT_PATH", "/p")
        manager.set("APP_CONTEXT", "app")

        config = manager.load_configuration()

        assert config.project_path == "/p"
        assert config.app_context == "app"
        assert config.tomcat_home == ""

    def test_load_into_updates_shared_record_in_place(self, manager):
        config = Configuration(JPDA_ADDRESS="5005")
        manager.set("APP_CONTEXT", "shop")

        result = manager.load_into(config)

        assert result is config
        assert config.app_context == "shop"
        assert config.jpda_address == "5005"
