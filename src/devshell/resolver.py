"""Ordered fallback lookup across configuration sources.

A source is a named pure function ``key -> value | NO_VALUE``. ``resolve``
asks the sources in order and stops at the first one that has a value.

Three chains are built on top of it:

- config file path: command line, project ``shell`` scope, release sys_config
- script path: command line, project ``shell`` scope
- components to boot: command line (delimited string), project ``shell``
  scope, release app list
"""

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from . import config
from .project import OptionMapping, ProjectState
from .telemetry import get_logger, metrics

logger = get_logger(__name__)


class _NoValue:
    """Marker for "this source has nothing for the key"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False


NO_VALUE: Any = _NoValue()

# Source names used in diagnostics
COMMAND_LINE = "command_line"
PROJECT_CONFIG = "project_config"
RELEASE_CONFIG = "release_config"

MatchCallback = Callable[["ConfigSource", str, Any], None]


@dataclass(frozen=True)
class ConfigSource:
    """A named provider of a value for a key.

    Attributes:
        name: Source name reported when it satisfies a lookup
        lookup: ``key -> value`` or ``NO_VALUE``; must not raise for a missing key
        description: Diagnostic message logged on a match
    """

    name: str
    lookup: Callable[[str], Any]
    description: str = ""


@dataclass(frozen=True)
class ResolvedConfig:
    """Result of one resolution.

    ``source`` is None when no source had a value and the default was used.
    """

    key: str
    value: Any
    source: str | None = None

    @property
    def found(self) -> bool:
        return self.source is not None


def resolve(
    sources: Sequence[ConfigSource],
    key: str,
    default: Any = NO_VALUE,
    on_match: MatchCallback | None = None,
) -> ResolvedConfig:
    """Return the first value any source has for ``key``.

    Sources after the first match are not queried. Nothing is cached, so
    repeated calls ask the sources again.
    """
    for source in sources:
        value = source.lookup(key)
        if value is NO_VALUE:
            continue
        logger.debug(source.description or f"[Resolver] Found {key} from {source.name}.")
        metrics.inc("config.resolved", {"key": key, "source": source.name})
        if on_match is not None:
            on_match(source, key, value)
        return ResolvedConfig(key=key, value=value, source=source.name)
    return ResolvedConfig(key=key, value=default)


def first_value(sources: Sequence[ConfigSource], key: str, default: Any = NO_VALUE) -> Any:
    return resolve(sources, key, default).value


def mapping_source(
    name: str,
    mapping: OptionMapping,
    description: str = "",
) -> ConfigSource:
    """Source backed by a mapping; a key mapped to None counts as absent."""

    def lookup(key: str) -> Any:
        value = mapping.get(key)
        return NO_VALUE if value is None else value

    return ConfigSource(name=name, lookup=lookup, description=description)


def parse_apps(text: str) -> list[str]:
    """Split a --apps string on any of space, comma or colon."""
    tokens = [text]
    for sep in config.APPS_DELIMITERS:
        tokens = [part for token in tokens for part in token.split(sep)]
    return [token for token in tokens if token]


# === Chains ===


def _release_source(project: ProjectState, attribute: str, description: str) -> ConfigSource:
    def lookup(key: str) -> Any:
        release = project.release
        value = getattr(release, attribute, None) if release is not None else None
        return NO_VALUE if value is None else value

    return ConfigSource(name=RELEASE_CONFIG, lookup=lookup, description=description)


def config_file_sources(options: OptionMapping, project: ProjectState) -> list[ConfigSource]:
    """Sources for the configuration file path (key ``config``)."""
    return [
        mapping_source(COMMAND_LINE, options, "[Resolver] Found config from command line option."),
        mapping_source(PROJECT_CONFIG, project.scope(), "[Resolver] Found config from project config file."),
        _release_source(project, "sys_config", "[Resolver] Found config from release config."),
    ]


def script_sources(options: OptionMapping, project: ProjectState) -> list[ConfigSource]:
    """Sources for the script bundle path (key ``script``)."""
    return [
        mapping_source(COMMAND_LINE, options, "[Resolver] Found script file from command line option."),
        mapping_source(PROJECT_CONFIG, project.scope(), "[Resolver] Found script file from project config file."),
    ]


def apps_sources(options: OptionMapping, project: ProjectState) -> list[ConfigSource]:
    """Sources for the components to boot (key ``apps``)."""

    def from_command_line(key: str) -> Any:
        value = options.get(key)
        if value is None:
            return NO_VALUE
        return parse_apps(value) if isinstance(value, str) else list(value)

    return [
        ConfigSource(
            name=COMMAND_LINE,
            lookup=from_command_line,
            description="[Resolver] Found shell apps from command line option.",
        ),
        mapping_source(PROJECT_CONFIG, project.scope(), "[Resolver] Found shell apps from project config file."),
        _release_source(project, "apps", "[Resolver] Found shell apps from release config."),
    ]
