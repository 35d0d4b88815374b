"""Component configuration file loading.

The configuration file is a YAML stream. The first non-empty document is
used and must be either a mapping::

    myapp:
      key: 1

or a list of (component, settings) pairs::

    - [myapp, [[key, 1]]]
    - other: {level: debug}

Anything else, including a missing or unparsable file, means "no
configuration" and leaves component settings untouched.
"""

from pathlib import Path
from typing import Any

import yaml

from .components.controller import ComponentController
from .project import OptionMapping, ProjectState
from .resolver import config_file_sources, resolve
from .telemetry import get_logger

logger = get_logger(__name__)

ConfigList = list[tuple[str, list[tuple[str, Any]]]]


def consult_config(root_dir: str | Path, filename: str) -> ConfigList:
    """Read ``filename`` relative to ``root_dir`` into (component, settings) pairs.

    Never raises; problems are logged and yield an empty list.
    """
    path = Path(root_dir) / filename
    logger.debug(f"[SysConfig] Loading configuration from {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"[SysConfig] {path} does not exist")
        return []
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"[SysConfig] Cannot read {path}: {e}")
        return []

    try:
        documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    except yaml.YAMLError as e:
        logger.warning(f"[SysConfig] Malformed configuration in {path}: {e}")
        return []

    if not documents:
        return []
    if len(documents) > 1:
        logger.debug(f"[SysConfig] Ignoring {len(documents) - 1} extra document(s) in {path}")

    try:
        return _normalize(documents[0])
    except ValueError as e:
        logger.warning(f"[SysConfig] Unexpected configuration layout in {path}: {e}")
        return []


def _normalize(document: Any) -> ConfigList:
    if isinstance(document, dict):
        pairs = list(document.items())
    elif isinstance(document, list):
        pairs = [_pair(item) for item in document]
    else:
        raise ValueError(f"top-level term must be a list or mapping, got {type(document).__name__}")
    return [(str(component), _settings(settings)) for component, settings in pairs]


def _pair(item: Any) -> tuple[Any, Any]:
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return item[0], item[1]
    if isinstance(item, dict) and len(item) == 1:
        return next(iter(item.items()))
    raise ValueError(f"expected a (name, value) pair, got {item!r}")


def _settings(settings: Any) -> list[tuple[str, Any]]:
    if settings is None:
        return []
    if isinstance(settings, dict):
        return [(str(k), v) for k, v in settings.items()]
    if isinstance(settings, list):
        return [(str(k), v) for k, v in map(_pair, settings)]
    raise ValueError(f"settings must be a list or mapping, got {settings!r}")


def find_config(options: OptionMapping, project: ProjectState) -> ConfigList | None:
    """Resolve the config file path and read it; None when no path is configured."""
    resolved = resolve(config_file_sources(options, project), "config")
    if not resolved.found:
        return None
    return consult_config(project.root_dir, str(resolved.value))


def reread_config(options: OptionMapping, project: ProjectState, controller: ComponentController) -> int:
    """Apply the configuration file to component settings.

    Returns:
        Number of settings applied
    """
    config_list = find_config(options, project)
    if not config_list:
        return 0

    applied = 0
    for component, items in config_list:
        for key, value in items:
            controller.set_env(component, key, value)
            applied += 1
    logger.debug(f"[SysConfig] Applied {applied} setting(s)")
    return applied
