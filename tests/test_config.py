import json
import uuid

import pytest

from dumpmigrate import ConfigError
from dumpmigrate.config import DEFAULT_TABLES, MigrationConfig, apply_overrides, load_config


def test_defaults():
    config = load_config(env={})
    assert config.tables == DEFAULT_TABLES
    assert config.listing_aliases == frozenset({"businesses", "franchise", "investors"})
    assert config.defaults.country == "India"
    assert config.defaults.currency == "INR"
    assert config.batch_size("messages") == 1000
    assert config.batch_size("unknown") == 500


def test_file_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "tables": ["users"],
                "listing_aliases": ["businesses"],
                "batch_sizes": {"users": 50},
                "defaults": {"currency": "USD"},
                "detect_booleans": True,
            }
        ),
        encoding="utf-8",
    )
    config = load_config(str(path), env={})
    assert config.tables == ("users",)
    assert config.listing_aliases == frozenset({"businesses"})
    assert config.batch_size("users") == 50
    assert config.batch_size("plans") == 500
    assert config.defaults.currency == "USD"
    assert config.defaults.country == "India"
    assert config.detect_booleans is True


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"output_dir": "from-file"}), encoding="utf-8")
    namespace = uuid.uuid4()
    config = load_config(
        str(path),
        env={
            "DUMPMIGRATE_OUTPUT_DIR": "from-env",
            "DUMPMIGRATE_NAMESPACE": str(namespace),
            "DUMPMIGRATE_DETECT_BOOLEANS": "yes",
        },
    )
    assert config.output_dir == "from-env"
    assert config.namespace == namespace
    assert config.detect_booleans is True


def test_unknown_key_rejected():
    with pytest.raises(ConfigError):
        apply_overrides(MigrationConfig(), {"colour": "blue"})


def test_bad_namespace_rejected():
    with pytest.raises(ConfigError):
        load_config(env={"DUMPMIGRATE_NAMESPACE": "not-a-uuid"})


def test_unreadable_file_rejected(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path), env={})
