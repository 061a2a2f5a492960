"""Tests for server configuration loading."""

import json

import pytest

from gridserver.config import ServerConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GRIDFS_CONFIG", "GRIDFS_ADDRESS", "GRIDFS_HOST", "GRIDFS_PORT",
                 "GRIDFS_DB_PATH", "GRIDFS_POOL_SIZE", "GRIDFS_BUCKETS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()
    assert config == ServerConfig()
    assert config.address == "et.mongo.gridfs"
    assert config.buckets == ["fs"]


def test_file_values(tmp_path):
    path = tmp_path / "server.json"
    path.write_text(json.dumps({"address": "bus.files", "port": 6000, "db_name": "/tmp/g.db", "unknown": 1}))

    config = load_config(path)

    assert config.address == "bus.files"
    assert config.port == 6000
    assert config.db_path == "/tmp/g.db"
    assert config.listen_addr == "0.0.0.0:6000"


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "server.json"
    path.write_text(json.dumps({"port": 6000}))
    monkeypatch.setenv("GRIDFS_CONFIG", str(path))
    monkeypatch.setenv("GRIDFS_PORT", "7000")
    monkeypatch.setenv("GRIDFS_BUCKETS", "fs, media ,")

    config = load_config()

    assert config.port == 7000
    assert config.buckets == ["fs", "media"]


def test_rejects_non_object(tmp_path):
    path = tmp_path / "server.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="JSON object"):
        load_config(path)


def test_rejects_non_integer_port(tmp_path):
    path = tmp_path / "server.json"
    path.write_text(json.dumps({"port": "6000"}))
    with pytest.raises(ValueError, match="integers"):
        load_config(path)
