"""Tests for configuration system."""

import pytest

from mac_process_exporter.config import (
    CollectionConfig,
    Config,
    ServerConfig,
    SystemConfig,
)
from mac_process_exporter.processes import default_supervisor_name


def test_server_config_defaults():
    """ServerConfig listens on loopback port 19002."""
    config = ServerConfig()
    assert config.host == "localhost"
    assert config.port == 19002
    assert config.port_env == "PORT"


def test_collection_config_defaults():
    config = CollectionConfig()
    assert config.timeout_seconds == 10.0
    assert config.max_workers == 8
    assert config.batch_size == 64
    assert config.supervisor_name == default_supervisor_name()
    assert config.log_groups is False


def test_system_config_defaults():
    config = SystemConfig()
    assert config.heartbeat_seconds == 300.0
    assert config.log_max_bytes == 5 * 1024 * 1024
    assert config.log_backup_count == 3


def test_config_paths():
    """Config provides correct paths."""
    config = Config()
    assert "mac-process-exporter" in str(config.config_dir)
    assert config.config_path.name == "config.toml"
    assert config.log_path.name == "exporter.log"
    assert config.log_path.parent == config.state_dir


def test_load_missing_file_returns_defaults(tmp_path):
    config = Config.load(tmp_path / "missing.toml", environ={})
    assert config == Config()


def test_save_and_load_preserves_values(tmp_path):
    config_path = tmp_path / "config.toml"
    config = Config()
    config.server.port = 9100
    config.collection.max_workers = 2
    config.collection.supervisor_name = "init"
    config.collection.log_groups = True
    config.system.heartbeat_seconds = 60.0
    config.save(config_path)

    loaded = Config.load(config_path, environ={})

    assert loaded.server.port == 9100
    assert loaded.collection.max_workers == 2
    assert loaded.collection.supervisor_name == "init"
    assert loaded.collection.log_groups is True
    assert loaded.system.heartbeat_seconds == 60.0


def test_save_writes_sections(tmp_path):
    config_path = tmp_path / "nested" / "config.toml"
    Config().save(config_path)
    text = config_path.read_text()
    assert "[server]" in text
    assert "[collection]" in text
    assert "[system]" in text


def test_load_partial_file_uses_defaults(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text("[collection]\nbatch_size = 16\n")

    config = Config.load(config_path, environ={})

    assert config.collection.batch_size == 16
    assert config.collection.max_workers == 8
    assert config.server.port == 19002


def test_load_invalid_toml_raises(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text("[server\nport = ")
    with pytest.raises(ValueError, match="Failed to parse"):
        Config.load(config_path, environ={})


@pytest.mark.parametrize(
    "content, message",
    [
        ("[server]\nport = 0\n", "port"),
        ("[server]\nport = 70000\n", "port"),
        ("[collection]\nmax_workers = 0\n", "max_workers"),
        ("[collection]\nbatch_size = 0\n", "batch_size"),
        ("[collection]\ntimeout_seconds = 0\n", "timeout_seconds"),
        ("[system]\nheartbeat_seconds = -1\n", "heartbeat_seconds"),
        ("[server]\nport = \"9100\"\n", "port must be an integer"),
        ("[server]\nport = true\n", "port must be an integer"),
        ("[server]\nhost = 127\n", "host must be a string"),
        ("[collection]\nmax_workers = \"4\"\n", "max_workers must be an integer"),
        ("[collection]\nbatch_size = 1.5\n", "batch_size must be an integer"),
        ("[collection]\ntimeout_seconds = \"10\"\n", "timeout_seconds must be a number"),
        ("[collection]\nlog_groups = \"yes\"\n", "log_groups must be true or false"),
        ("[system]\nheartbeat_seconds = false\n", "heartbeat_seconds must be a number"),
        ("[system]\nlog_backup_count = -1\n", "log_backup_count"),
    ],
)
def test_load_rejects_invalid_values(tmp_path, content, message):
    config_path = tmp_path / "config.toml"
    config_path.write_text(content)
    with pytest.raises(ValueError, match=message):
        Config.load(config_path, environ={})


class TestPortEnvironment:
    """Tests for the PORT environment override."""

    def test_env_overrides_default(self, tmp_path):
        config = Config.load(tmp_path / "missing.toml", environ={"PORT": "9200"})
        assert config.server.port == 9200

    def test_env_overrides_file(self, tmp_path):
        config_path = tmp_path / "config.toml"
        config_path.write_text("[server]\nport = 9100\n")
        config = Config.load(config_path, environ={"PORT": "9300"})
        assert config.server.port == 9300

    def test_empty_env_is_ignored(self, tmp_path):
        config = Config.load(tmp_path / "missing.toml", environ={"PORT": ""})
        assert config.server.port == 19002

    def test_non_integer_env_raises(self, tmp_path):
        with pytest.raises(ValueError, match="PORT must be an integer"):
            Config.load(tmp_path / "missing.toml", environ={"PORT": "http"})

    def test_out_of_range_env_raises(self, tmp_path):
        with pytest.raises(ValueError, match="port must be between"):
            Config.load(tmp_path / "missing.toml", environ={"PORT": "99999"})

    def test_custom_env_name(self, tmp_path):
        config_path = tmp_path / "config.toml"
        config_path.write_text('[server]\nport_env = "EXPORTER_PORT"\n')
        config = Config.load(config_path, environ={"PORT": "1", "EXPORTER_PORT": "9400"})
        assert config.server.port == 9400

    def test_reads_process_environment_by_default(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PORT", "9500")
        config = Config.load(tmp_path / "missing.toml")
        assert config.server.port == 9500
