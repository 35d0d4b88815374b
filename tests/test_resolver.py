"""Tests for ordered configuration resolution."""

from pathlib import Path
from unittest.mock import Mock

from devshell.project import ProjectSettings, ProjectState, make_options
from devshell.resolver import (
    COMMAND_LINE,
    NO_VALUE,
    PROJECT_CONFIG,
    RELEASE_CONFIG,
    ConfigSource,
    apps_sources,
    config_file_sources,
    first_value,
    parse_apps,
    resolve,
    script_sources,
)
from devshell.telemetry import metrics


def counting_source(name, value):
    lookup = Mock(return_value=value)
    return ConfigSource(name=name, lookup=lookup), lookup


def project_with(**settings):
    return ProjectState(root_dir=Path("/project"), settings=ProjectSettings.model_validate(settings))


class TestResolve:
    """Tests for resolve()."""

    def test_first_source_with_value_wins(self):
        a, _ = counting_source("a", NO_VALUE)
        b, _ = counting_source("b", "from-b")
        c, _ = counting_source("c", "from-c")

        result = resolve([a, b, c], "key")

        assert result.value == "from-b"
        assert result.source == "b"
        assert result.found is True

    def test_later_sources_are_not_queried(self):
        a, a_lookup = counting_source("a", "hit")
        b, b_lookup = counting_source("b", "other")
        c, c_lookup = counting_source("c", "other")

        resolve([a, b, c], "key")

        a_lookup.assert_called_once_with("key")
        b_lookup.assert_not_called()
        c_lookup.assert_not_called()

    def test_all_sources_empty_returns_default(self):
        sources = [counting_source(n, NO_VALUE)[0] for n in "abc"]

        result = resolve(sources, "key", default="fallback")

        assert result.value == "fallback"
        assert result.source is None
        assert result.found is False

    def test_repeated_lookup_is_idempotent_and_not_cached(self):
        a, a_lookup = counting_source("a", NO_VALUE)
        b, b_lookup = counting_source("b", NO_VALUE)

        first = resolve([a, b], "key")
        second = resolve([a, b], "key")

        assert first == second
        assert first.value is NO_VALUE
        assert a_lookup.call_count == 2
        assert b_lookup.call_count == 2

    def test_falsy_values_still_count(self):
        a, _ = counting_source("a", "")
        b, b_lookup = counting_source("b", "x")

        assert resolve([a, b], "key").value == ""
        b_lookup.assert_not_called()

    def test_on_match_reports_source(self):
        a, _ = counting_source("a", NO_VALUE)
        b, _ = counting_source("b", 42)
        on_match = Mock()

        resolve([a, b], "key", on_match=on_match)

        on_match.assert_called_once_with(b, "key", 42)

    def test_match_is_counted(self):
        a, _ = counting_source("a", 1)
        resolve([a], "key")
        assert metrics.get_counter("config.resolved", {"key": "key", "source": "a"}) == 1

    def test_first_value(self):
        a, _ = counting_source("a", NO_VALUE)
        assert first_value([a], "key") is NO_VALUE
        assert first_value([a], "key", default=None) is None


class TestParseApps:
    """Tests for --apps parsing."""

    def test_mixed_delimiters(self):
        assert parse_apps("a,b:c") == ["a", "b", "c"]

    def test_spaces_and_repeats(self):
        assert parse_apps(" a ,, b  c:") == ["a", "b", "c"]

    def test_empty(self):
        assert parse_apps("") == []


class TestConfigFileChain:
    """Tests for the config file path chain."""

    def test_command_line_first(self):
        options = make_options(config="shell.config")
        project = project_with(shell={"config": "other.config"}, release={"sys_config": "sys.config"})

        result = resolve(config_file_sources(options, project), "config")

        assert result.value == "shell.config"
        assert result.source == COMMAND_LINE

    def test_project_shell_scope(self):
        project = project_with(shell={"config": "project.config"}, release={"sys_config": "sys.config"})

        result = resolve(config_file_sources(make_options(), project), "config")

        assert result.value == "project.config"
        assert result.source == PROJECT_CONFIG

    def test_release_sys_config(self):
        project = project_with(release={"sys_config": "sys.config"})

        result = resolve(config_file_sources(make_options(), project), "config")

        assert result.value == "sys.config"
        assert result.source == RELEASE_CONFIG

    def test_nothing_configured(self):
        result = resolve(config_file_sources(make_options(), project_with()), "config")
        assert result.found is False


class TestScriptChain:
    """Tests for the script path chain."""

    def test_command_line_then_project(self):
        project = project_with(shell={"script": "setup.py"})

        assert resolve(script_sources(make_options(script="cli.py"), project), "script").value == "cli.py"
        assert resolve(script_sources(make_options(), project), "script").value == "setup.py"

    def test_release_is_not_consulted(self):
        project = project_with(release={"sys_config": "sys.config", "apps": ["a"]})
        assert resolve(script_sources(make_options(), project), "script").found is False


class TestAppsChain:
    """Tests for the components-to-boot chain."""

    def test_command_line_string_is_split(self):
        result = resolve(apps_sources(make_options(apps="a,b:c"), project_with()), "apps")
        assert result.value == ["a", "b", "c"]
        assert result.source == COMMAND_LINE

    def test_project_list(self):
        project = project_with(shell={"apps": ["web", ["tools", "load"]]})
        result = resolve(apps_sources(make_options(), project), "apps")
        assert result.value == ["web", ["tools", "load"]]
        assert result.source == PROJECT_CONFIG

    def test_release_apps(self):
        project = project_with(release={"name": "rel", "version": "1", "apps": ["x", "y"]})
        result = resolve(apps_sources(make_options(), project), "apps")
        assert result.value == ["x", "y"]
        assert result.source == RELEASE_CONFIG

    def test_no_apps(self):
        assert resolve(apps_sources(make_options(), project_with()), "apps").found is False
