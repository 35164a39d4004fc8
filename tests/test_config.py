"""Tests for config loading and typed provider config parsing."""

from typing import Optional

import pytest
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from devfeed.config import (
    _deep_merge,
    get_daemon_config,
    get_db_path,
    get_retention_days,
    load_config,
    parse_provider_config,
)
from devfeed.errors import ConfigError
from devfeed.models import parse_config_blob
from devfeed.sources.github_trending import TrendingConfig
from devfeed.sources.hackernews import HackerNewsConfig
from devfeed.sources.reddit import RedditConfig


class SampleConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    ratio: float = 0.5
    token: Optional[str] = None
    limit: int = Field(5, ge=1)
    keywords: list[str] = Field(default_factory=list)


class TestDeepMerge:
    def test_nested_override(self):
        base = {"http": {"timeout_seconds": 15, "user_agent": "a"}, "db_path": "x"}
        merged = _deep_merge(base, {"http": {"timeout_seconds": 5}})
        assert merged["http"] == {"timeout_seconds": 5, "user_agent": "a"}
        assert merged["db_path"] == "x"

    def test_base_not_mutated(self):
        base = {"daemon": {"interval_minutes": 15}}
        _deep_merge(base, {"daemon": {"interval_minutes": 1}})
        assert base["daemon"]["interval_minutes"] == 15


class TestLoadConfig:
    def test_user_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"db_path": str(tmp_path / "feed.db"), "retention": {"default_days": 7}}))
        config = load_config(path)
        assert get_db_path(config) == tmp_path / "feed.db"
        assert get_retention_days(config) == 7

    def test_defaults_present(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert get_retention_days(config) == 30
        assert get_daemon_config(config).get("max_concurrency") == 4


class TestParseProviderConfig:
    def test_defaults_for_missing_keys(self):
        cfg = parse_provider_config(SampleConfig, {})
        assert cfg == SampleConfig()

    def test_none_blob(self):
        assert parse_provider_config(SampleConfig, None) == SampleConfig()

    def test_unknown_keys_ignored(self):
        cfg = parse_provider_config(SampleConfig, {"limit": 9, "colour": "blue"})
        assert cfg.limit == 9
        assert not hasattr(cfg, "colour")

    def test_wrong_type_rejected(self):
        with pytest.raises(ConfigError, match="limit"):
            parse_provider_config(SampleConfig, {"limit": "ten"})

    def test_bool_is_not_int(self):
        with pytest.raises(ConfigError):
            parse_provider_config(SampleConfig, {"limit": True})

    def test_int_accepted_for_float(self):
        assert parse_provider_config(SampleConfig, {"ratio": 1}).ratio == 1

    def test_optional_accepts_none(self):
        assert parse_provider_config(SampleConfig, {"token": None}).token is None

    def test_list_item_types_checked(self):
        with pytest.raises(ConfigError, match="keywords"):
            parse_provider_config(SampleConfig, {"keywords": ["ok", 3]})

    def test_out_of_range_rejected(self):
        with pytest.raises(ConfigError, match="limit"):
            parse_provider_config(SampleConfig, {"limit": 0})

    def test_every_failing_field_reported(self):
        with pytest.raises(ConfigError) as excinfo:
            parse_provider_config(SampleConfig, {"limit": "ten", "token": 3})
        assert "limit" in str(excinfo.value)
        assert "token" in str(excinfo.value)

    def test_non_mapping_blob(self):
        with pytest.raises(ConfigError, match="mapping"):
            parse_provider_config(SampleConfig, ["limit", 3])

    def test_models_are_frozen(self):
        cfg = parse_provider_config(SampleConfig, {})
        with pytest.raises(ValidationError):
            cfg.limit = 7

    def test_provider_value_checks(self):
        with pytest.raises(ConfigError, match="since"):
            parse_provider_config(TrendingConfig, {"since": "yearly"})
        with pytest.raises(ConfigError, match="story_types"):
            parse_provider_config(HackerNewsConfig, {"story_types": ["front"]})
        with pytest.raises(ConfigError, match="sort"):
            parse_provider_config(RedditConfig, {"sort": "best"})
        with pytest.raises(ConfigError, match="story_types"):
            parse_provider_config(HackerNewsConfig, {"story_types": []})
        with pytest.raises(ConfigError, match="max_items"):
            parse_provider_config(TrendingConfig, {"max_items": 500})


class TestConfigBlob:
    def test_dict_passthrough(self):
        assert parse_config_blob({"a": 1}) == {"a": 1}

    def test_json_text(self):
        assert parse_config_blob('{"max_items": 5}') == {"max_items": 5}

    def test_prefix_and_newlines_cleaned(self):
        assert parse_config_blob('Config: {"keywords":\n ["rust"]}') == {"keywords": ["rust"]}

    def test_invalid_becomes_empty(self):
        assert parse_config_blob("{not json") == {}
        assert parse_config_blob("[1, 2]") == {}
        assert parse_config_blob(None) == {}
