"""
Property-based tests for configuration module.

Uses Hypothesis for property-based testing to verify that configuration
survives JSON serialization and that overrides are layered in order.
"""

import argparse
import json
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_enforcer.cli import (
    apply_env_overrides,
    build_config,
    config_from_dict,
    config_to_dict,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)
from domain_enforcer.config import (
    AggregationConfig,
    DoHConfig,
    LoggingConfig,
    MergePolicyConfig,
    PathsConfig,
    RefreshConfig,
    ResolverConfig,
    RetryConfig,
    SystemConfig,
    ToolsConfig,
    TransportConfig,
)


# Strategies for generating valid configuration objects

name_strategy = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=16)

absolute_path_strategy = st.lists(name_strategy, min_size=1, max_size=4).map(
    lambda parts: Path("/" + "/".join(parts))
)

seconds_strategy = st.floats(min_value=0.1, max_value=100_000.0, allow_nan=False)


@st.composite
def paths_config_strategy(draw) -> PathsConfig:
    """Generate PathsConfig objects with absolute paths."""
    return PathsConfig(
        hosts_path=draw(absolute_path_strategy),
        anchor_path=draw(absolute_path_strategy),
        anchor_name=draw(name_strategy.map(lambda s: f"com.apple/{s}")),
        ipv4_table=draw(name_strategy),
        ipv6_table=draw(name_strategy),
        temp_dir=draw(st.one_of(st.none(), absolute_path_strategy)),
    )


@st.composite
def resolver_config_strategy(draw) -> ResolverConfig:
    """Generate ResolverConfig objects with a nested DoHConfig."""
    doh = DoHConfig(
        google_endpoint=draw(name_strategy.map(lambda s: f"https://{s}.example/resolve")),
        timeout_seconds=draw(seconds_strategy),
        attempts=draw(st.integers(min_value=1, max_value=5)),
        aggressive_attempts=draw(st.integers(min_value=1, max_value=10)),
        ecs_subnets=draw(st.lists(st.sampled_from(["0.0.0.0/0", "10.0.0.0/8", "2.16.0.0/13"]), max_size=3)),
    )
    return ResolverConfig(
        use_system=draw(st.booleans()),
        use_iterative=draw(st.booleans()),
        use_doh=draw(st.booleans()),
        attempts_per_record=draw(st.integers(min_value=1, max_value=20)),
        max_alias_expansions=draw(st.integers(min_value=1, max_value=64)),
        aggressive_suffixes=draw(st.lists(name_strategy.map(lambda s: f"{s}.net"), max_size=3)),
        doh=doh,
    )


@st.composite
def system_config_strategy(draw) -> SystemConfig:
    """Generate complete SystemConfig objects."""
    return SystemConfig(
        paths=draw(paths_config_strategy()),
        tools=ToolsConfig(pfctl=str(draw(absolute_path_strategy))),
        resolver=draw(resolver_config_strategy()),
        merge_policy=MergePolicyConfig(
            max_age_seconds=draw(st.integers(min_value=1, max_value=10_000_000)),
            max_entries_per_family=draw(st.integers(min_value=1, max_value=8192)),
        ),
        aggregation=AggregationConfig(
            enabled=draw(st.booleans()),
            min_addresses_per_prefix=draw(st.integers(min_value=1, max_value=256)),
        ),
        transport=TransportConfig(kind=draw(st.sampled_from(["osascript", "sudo", "shell"]))),
        retry=RetryConfig(base_delay_seconds=draw(seconds_strategy)),
        refresh=RefreshConfig(
            min_refresh_interval_seconds=draw(seconds_strategy),
            domains_file=draw(st.one_of(st.none(), absolute_path_strategy)),
        ),
        logging=LoggingConfig(
            level=draw(st.sampled_from(["debug", "info", "warn", "error"])),
            output_format=draw(st.sampled_from(["json", "text", "both"])),
        ),
        language=draw(st.sampled_from(["de", "en"])),
        simulation_mode=draw(st.booleans()),
        startup_self_test=draw(st.booleans()),
    )


class TestConfigRoundTripProperty:
    """Configuration survives serialization unchanged."""

    @given(config=system_config_strategy())
    @settings(max_examples=100)
    def test_dict_round_trip(self, config: SystemConfig) -> None:
        """
        Property: *For any* valid SystemConfig, converting to a dict and back
        yields an equal configuration.
        """
        data = config_to_dict(config)
        json.dumps(data)
        assert config_from_dict(data) == config

    @given(config=system_config_strategy())
    @settings(max_examples=50)
    def test_paths_are_serialized_as_strings(self, config: SystemConfig) -> None:
        data = config_to_dict(config)
        assert data["paths"]["hosts_path"] == str(config.paths.hosts_path)
        assert isinstance(data["resolver"]["doh"], dict)

    def test_file_round_trip(self, tmp_path) -> None:
        config = create_default_config(simulation_mode=True, language="de")
        config.paths.temp_dir = tmp_path / "staging"
        path = tmp_path / "nested" / "config.json"

        assert save_config_to_file(config, path)
        assert load_config_from_file(path) == config


class TestConfigLoading:
    """Partial and broken files."""

    def test_missing_sections_use_defaults(self) -> None:
        config = config_from_dict({"language": "de", "paths": {"hosts_path": "/tmp/hosts"}})
        assert config.language == "de"
        assert config.paths.hosts_path == Path("/tmp/hosts")
        assert config.paths.anchor_path == PathsConfig().anchor_path
        assert config.resolver == ResolverConfig()

    def test_unknown_keys_are_ignored(self) -> None:
        config = config_from_dict({
            "paths": {"hosts_path": "/tmp/hosts", "legacy": True},
            "resolver": {"use_doh": False, "doh": {"attempts": 2, "unknown": 1}},
            "notifications": {"telegram": {}},
        })
        assert config.resolver.use_doh is False
        assert config.resolver.doh.attempts == 2

    def test_missing_file_returns_none_silently(self, tmp_path, capsys) -> None:
        assert load_config_from_file(tmp_path / "absent.json") is None
        assert capsys.readouterr().err == ""

    def test_invalid_json_returns_none(self, tmp_path, capsys) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_config_from_file(path) is None
        assert "Error loading config" in capsys.readouterr().err

    def test_non_object_returns_none(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert load_config_from_file(path) is None

    def test_section_of_wrong_type_returns_none(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"paths": ["hosts"]}), encoding="utf-8")
        assert load_config_from_file(path) is None


class TestOverrides:
    """Environment and flag layering."""

    def test_env_overrides(self) -> None:
        config = apply_env_overrides(SystemConfig(), {
            "DOMAIN_ENFORCER_HOSTS_PATH": "/tmp/hosts",
            "DOMAIN_ENFORCER_ANCHOR_PATH": " /tmp/anchor ",
            "DOMAIN_ENFORCER_ANCHOR_NAME": "test/anchor",
            "DOMAIN_ENFORCER_LANGUAGE": "DE",
            "DOMAIN_ENFORCER_TRANSPORT": "Sudo",
        })
        assert config.paths.hosts_path == Path("/tmp/hosts")
        assert config.paths.anchor_path == Path("/tmp/anchor")
        assert config.paths.anchor_name == "test/anchor"
        assert config.language == "de"
        assert config.transport.kind == "sudo"

    @given(language=st.text(max_size=5))
    @settings(max_examples=50)
    def test_unsupported_language_is_ignored(self, language: str) -> None:
        config = apply_env_overrides(SystemConfig(), {"DOMAIN_ENFORCER_LANGUAGE": language})
        expected = language.strip().lower() if language.strip().lower() in ("de", "en") else "en"
        assert config.language == expected

    def test_empty_values_are_ignored(self) -> None:
        config = apply_env_overrides(SystemConfig(), {"DOMAIN_ENFORCER_HOSTS_PATH": "  "})
        assert config.paths.hosts_path == PathsConfig().hosts_path

    def test_build_config_precedence(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "config.json"
        saved = create_default_config(language="de")
        saved.paths.hosts_path = tmp_path / "file-hosts"
        saved.transport.kind = "sudo"
        save_config_to_file(saved, path)

        monkeypatch.setenv("DOMAIN_ENFORCER_HOSTS_PATH", str(tmp_path / "env-hosts"))
        monkeypatch.delenv("DOMAIN_ENFORCER_TRANSPORT", raising=False)
        monkeypatch.delenv("DOMAIN_ENFORCER_LANGUAGE", raising=False)
        args = argparse.Namespace(config=str(path), language="en", dry_run=True)

        config = build_config(args)
        assert config.paths.hosts_path == tmp_path / "env-hosts"
        assert config.transport.kind == "sudo"
        assert config.language == "en"
        assert config.simulation_mode is True

    def test_build_config_with_unreadable_file(self, tmp_path, capsys) -> None:
        args = argparse.Namespace(config=str(tmp_path / "absent.json"), language=None, dry_run=False)
        assert build_config(args) is None
        assert "Could not load config" in capsys.readouterr().err
