"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from media_organizer.exceptions import ConfigurationError
from media_organizer.models.config import Config, apply_environment, load_config, save_config

FULL_ENV = {
    "AWS_BUCKET": "media",
    "AWS_REGION": "us-east-1",
    "AWS_ACCESS_KEY_ID": "id",
    "AWS_ACCESS_SECRET": "secret",
    "DATABASE_PATH": "/data/catalog.db",
}


class TestConfig:
    """Test cases for Config."""

    def test_defaults(self):
        config = Config.default()
        assert config.reorganize.slot_names == ["student_file", "homework_file", "teacher_file", "ppt_file"]
        assert config.reorganize.concurrency == 1
        assert config.reorganize.max_scan == 10_000
        assert not config.reorganize.verify_destination
        assert not config.reorganize.append_hash_suffix

    def test_missing_parameters_listed_once(self):
        missing = Config.default().missing_parameters()
        assert missing == ["AWS_BUCKET", "AWS_REGION", "AWS_ACCESS_KEY_ID", "AWS_ACCESS_SECRET", "DATABASE_PATH"]

    def test_validate_raises_with_missing(self):
        config = apply_environment(Config.default(), {"AWS_BUCKET": "media"})
        with pytest.raises(ConfigurationError) as excinfo:
            config.validate()
        assert "AWS_BUCKET" not in excinfo.value.missing
        assert "AWS_REGION" in excinfo.value.missing

    def test_validate_concurrency(self):
        config = apply_environment(Config.default(), FULL_ENV)
        config.reorganize.concurrency = 0
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_environment(self):
        config = apply_environment(Config.default(), {**FULL_ENV, "MEDIA_ORGANIZER_JOURNAL": "/tmp/j.db"})
        assert config.validate() is config
        assert config.storage.bucket == "media"
        assert config.storage.secret_access_key == "secret"
        assert config.database.path == Path("/data/catalog.db")
        assert config.journal_path == Path("/tmp/j.db")

    def test_database_filename_alias(self):
        config = apply_environment(Config.default(), {"DATABASE_FILENAME": "cms.db"})
        assert config.database.path == Path("cms.db")


class TestLoadConfig:
    """Test cases for file-based configuration."""

    def test_round_trip_and_env_override(self, tmp_path):
        path = tmp_path / "config.json"
        config = Config.default()
        config.storage.bucket = "from-file"
        config.storage.region = "eu-west-1"
        config.reorganize.concurrency = 4
        config.database.path = tmp_path / "catalog.db"
        save_config(config, path)

        loaded = load_config(path, environ={"AWS_BUCKET": "from-env"})

        assert loaded.storage.bucket == "from-env"
        assert loaded.storage.region == "eu-west-1"
        assert loaded.reorganize.concurrency == 4
        assert loaded.database.path == tmp_path / "catalog.db"

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_config(path, environ={})

    def test_no_file(self):
        assert load_config(None, environ={}).storage.bucket is None

    def test_saved_file_is_json(self, tmp_path):
        path = tmp_path / "config.json"
        save_config(Config.default(), path)
        data = json.loads(path.read_text())
        assert set(data) == {"storage", "database", "reorganize", "journal_path"}
