"""Tests for configuration loading and startup validation."""

from pathlib import Path

import pytest
import yaml

from schoolstatus.config.errors import ConfigError
from schoolstatus.config.settings import CONFIG_ENV_VAR, load_config, parse_config
from schoolstatus.ingest.coordinator import DispatchMode
from schoolstatus.ingest.sources import DEFAULT_CONTEXT_WINDOW, ExtractionStrategy, Verdict
from schoolstatus.resolution.models import CanonicalStatus

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "status.yaml"


def minimal(**engine):
    return {
        "entity": {"name": "Example District", "aliases": ["Example District Schools"]},
        "engine": engine,
        "sources": [
            {"name": "Homepage", "url": "https://example.k12.us/", "strategy": "selector",
             "selector": ".alert", "require_mention": False, "priority": 1},
            {"name": "Channel 4", "url": "https://ch4.example.com/closings", "priority": 2,
             "timeout_seconds": 8, "headers": {"User-Agent": "Mozilla/5.0"}},
        ],
    }


class TestShippedConfig:
    def test_repo_config_loads(self):
        config = load_config(str(REPO_CONFIG))

        assert config.entity.name == "Delaware City"
        assert len(config.sources) == 9
        assert config.dispatch_mode == DispatchMode.PARALLEL
        assert config.resolution_strategy == "severity_override"
        assert config.cache_ttl_seconds == 60

    def test_repo_config_priorities_unique(self):
        config = load_config(str(REPO_CONFIG))
        priorities = [s.priority for s in config.sources]
        assert len(priorities) == len(set(priorities))


class TestParseConfig:
    def test_defaults(self):
        config = parse_config(minimal())

        assert config.dispatch_mode == DispatchMode.PARALLEL
        assert config.all_failed_status == CanonicalStatus.UNKNOWN
        assert config.no_mention_verdict == Verdict.OPEN
        assert config.entity.names == ["Example District", "Example District Schools"]

    def test_source_fields(self):
        homepage, channel = parse_config(minimal(default_timeout_seconds=3)).sources

        assert homepage.strategy == ExtractionStrategy.SELECTOR
        assert homepage.require_mention is False
        assert homepage.timeout_seconds == 3
        assert homepage.context_window is None
        assert channel.strategy == ExtractionStrategy.WINDOWED
        assert channel.context_window == DEFAULT_CONTEXT_WINDOW
        assert channel.timeout_seconds == 8
        assert channel.headers == {"User-Agent": "Mozilla/5.0"}

    def test_engine_context_window_applies_to_windowed_sources(self):
        config = parse_config(minimal(context_window=75))
        assert config.sources[1].context_window == 75

    def test_no_report_safe_default(self):
        config = parse_config(minimal(all_failed_status="NO REPORT / UNKNOWN"))
        assert config.all_failed_status == CanonicalStatus.NO_REPORT

    def test_priority_fallback_with_sequential(self):
        config = parse_config(minimal(dispatch_mode="sequential", resolution_strategy="priority_fallback"))
        assert config.resolution_strategy == "priority_fallback"

    def test_retry_section(self):
        raw = minimal()
        raw["retry"] = {"max_retries": 2}
        assert parse_config(raw).retry == {"max_retries": 2}


class TestValidationErrors:
    def test_missing_entity(self):
        raw = minimal()
        del raw["entity"]
        with pytest.raises(ConfigError, match="entity.name"):
            parse_config(raw)

    def test_no_sources(self):
        raw = minimal()
        raw["sources"] = []
        with pytest.raises(ConfigError, match="At least one source"):
            parse_config(raw)

    def test_duplicate_names(self):
        raw = minimal()
        raw["sources"][1]["name"] = "Homepage"
        with pytest.raises(ConfigError, match="Duplicate"):
            parse_config(raw)

    def test_missing_url(self):
        raw = minimal()
        del raw["sources"][1]["url"]
        with pytest.raises(ConfigError, match="name and url"):
            parse_config(raw)

    def test_unknown_strategy(self):
        raw = minimal()
        raw["sources"][1]["strategy"] = "regex"
        with pytest.raises(ConfigError, match="strategy"):
            parse_config(raw)

    def test_selector_strategy_without_selector(self):
        raw = minimal()
        del raw["sources"][0]["selector"]
        with pytest.raises(ConfigError, match="no selector"):
            parse_config(raw)

    def test_invalid_selector(self):
        raw = minimal()
        raw["sources"][0]["selector"] = "div["
        with pytest.raises(ConfigError, match="invalid selector"):
            parse_config(raw)

    @pytest.mark.parametrize("timeout", [0, -1, "soon"])
    def test_bad_timeout(self, timeout):
        raw = minimal()
        raw["sources"][1]["timeout_seconds"] = timeout
        with pytest.raises(ConfigError, match="timeout_seconds"):
            parse_config(raw)

    def test_unknown_dispatch_mode(self):
        with pytest.raises(ConfigError, match="dispatch_mode"):
            parse_config(minimal(dispatch_mode="round_robin"))

    def test_unknown_policy(self):
        with pytest.raises(ConfigError, match="resolution_strategy"):
            parse_config(minimal(resolution_strategy="coin_flip"))

    def test_priority_fallback_requires_sequential(self):
        with pytest.raises(ConfigError, match="sequential"):
            parse_config(minimal(resolution_strategy="priority_fallback"))

    def test_closed_is_not_a_safe_default(self):
        with pytest.raises(ConfigError, match="all_failed_status"):
            parse_config(minimal(all_failed_status="CLOSED"))

    def test_error_no_mention_verdict(self):
        with pytest.raises(ConfigError, match="no_mention_verdict"):
            parse_config(minimal(no_mention_verdict="ERROR"))

    def test_negative_ttl(self):
        with pytest.raises(ConfigError, match="cache_ttl_seconds"):
            parse_config(minimal(cache_ttl_seconds=-5))


class TestLoadConfig:
    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump(minimal(cache_ttl_seconds=5)))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert load_config().cache_ttl_seconds == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("sources: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(str(path))


class TestMalformedStructure:
    @pytest.mark.parametrize("document", [
        "- just\n- a list\n",
        "entity: Example District\nsources: []\n",
        "entity: {name: X}\nengine: [parallel]\nsources: [{name: A, url: 'https://a.example.com'}]\n",
        "entity: {name: X}\nsources: ['https://a.example.com']\n",
        "entity: {name: X}\nsources: {name: A}\n",
    ])
    def test_non_mapping_sections_raise_config_error(self, tmp_path, document):
        path = tmp_path / "status.yaml"
        path.write_text(document)
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "status.yaml"
        path.write_text("")
        with pytest.raises(ConfigError, match="entity.name"):
            load_config(str(path))


class TestContextWindow:
    @pytest.mark.parametrize("window", [0, 0.5, -10, "wide", True])
    def test_source_window_must_be_positive_integer(self, window):
        raw = minimal()
        raw["sources"][1]["context_window"] = window
        with pytest.raises(ConfigError, match="context_window"):
            parse_config(raw)

    @pytest.mark.parametrize("window", [0, 12.5])
    def test_engine_window_must_be_positive_integer(self, window):
        with pytest.raises(ConfigError, match="engine.context_window"):
            parse_config(minimal(context_window=window))

    def test_window_of_one_accepted(self):
        raw = minimal()
        raw["sources"][1]["context_window"] = 1
        assert parse_config(raw).sources[1].context_window == 1
