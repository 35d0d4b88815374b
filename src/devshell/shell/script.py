"""Script runner - run an optional script bundle before components boot.

A bundle is either a zipapp (a zip archive holding ``__main__.py``) or a
plain Python source file, optionally starting with a shebang line. Its
payload is compiled, loaded as a module registered in ``sys.modules`` and
its ``main`` entry point is called with an empty argument vector.

A script prepares state the shell depends on, so every failure is fatal.
"""

import re
import sys
import traceback
import types
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .. import config
from ..errors import ScriptExecutionError
from ..project import OptionMapping, ProjectState
from ..resolver import NO_VALUE, first_value, script_sources
from ..telemetry import get_logger

logger = get_logger(__name__)

# Failure categories
EXTRACT = "extract"
LOAD = "load"
INVOKE = "invoke"


@dataclass(frozen=True)
class ScriptPayload:
    """Extracted script source.

    Attributes:
        name: Module name the payload is loaded under
        source: Python source bytes
        filename: Name used for tracebacks
        archive: Zip archive the payload came from, if any
    """

    name: str
    source: bytes
    filename: str
    archive: Path | None = None


def module_name(path: Path) -> str:
    name = re.sub(r"\W", "_", path.stem)
    return f"_{name}" if name[:1].isdigit() else name


def extract(path: Path) -> ScriptPayload:
    """Read the compiled-to-be payload out of a bundle."""
    name = module_name(path)
    if zipfile.is_zipfile(path):
        with zipfile.ZipFile(path) as archive:
            source = archive.read(config.SCRIPT_BUNDLE_MAIN)
        return ScriptPayload(name, source, f"{path}/{config.SCRIPT_BUNDLE_MAIN}", archive=path)

    source = path.read_bytes()
    if source.startswith(b"#!"):
        # keep line numbers stable in tracebacks
        _, _, rest = source.partition(b"\n")
        source = b"\n" + rest
    return ScriptPayload(name, source, str(path))


def load(payload: ScriptPayload) -> types.ModuleType:
    """Compile and execute the payload as a module addressable by name."""
    existing = sys.modules.get(payload.name)
    if existing is not None and getattr(existing, "__file__", None) != payload.filename:
        raise ImportError(f"module name {payload.name!r} is already taken by {existing!r}")

    code = compile(payload.source, payload.filename, "exec")
    module = types.ModuleType(payload.name)
    module.__file__ = payload.filename
    archive_path = None
    if payload.archive is not None and str(payload.archive) not in sys.path:
        archive_path = str(payload.archive)
        sys.path.insert(0, archive_path)

    sys.modules[payload.name] = module
    try:
        exec(code, module.__dict__)
    except BaseException:
        sys.modules.pop(payload.name, None)
        if archive_path is not None and archive_path in sys.path:
            sys.path.remove(archive_path)
        raise
    logger.debug(f"[Script] Compiled script as {payload.name}")
    return module


def invoke(module: types.ModuleType, entrypoint: str = config.SCRIPT_ENTRYPOINT) -> Any:
    entry = getattr(module, entrypoint, None)
    if not callable(entry):
        raise AttributeError(f"{module.__name__} has no callable {entrypoint!r}")
    logger.debug(f"[Script] Evaluating {module.__name__}.{entrypoint}([])")
    try:
        return entry([])
    except SystemExit as e:
        if e.code in (None, 0):
            return None
        raise


def run_script_file(path: str | Path) -> Any:
    """Extract, load and invoke a bundle.

    Raises:
        ScriptExecutionError: naming the file, the failing stage and the stack
    """
    path = Path(path)
    stage = EXTRACT
    try:
        logger.debug(f"[Script] Extracting script from {path}")
        payload = extract(path)
        stage = LOAD
        module = load(payload)
        stage = INVOKE
        result = invoke(module)
    except (Exception, SystemExit) as e:
        raise ScriptExecutionError(str(path), stage, e, traceback.format_exc()) from e

    logger.debug(f"[Script] Result: {result!r}")
    return result


def maybe_run_script(options: OptionMapping, project: ProjectState) -> Path | None:
    """Run the configured script, if any.

    Returns:
        Absolute path of the script that ran, or None when skipped
    """
    value = first_value(script_sources(options, project), "script")
    if value is NO_VALUE:
        logger.debug("[Script] No script file specified.")
        return None
    if value == config.SCRIPT_DISABLED:
        logger.debug("[Script] Shell script execution skipped (--script none).")
        return None

    path = Path(value).absolute()
    run_script_file(path)
    return path
