"""Tests for the script runner."""

import sys
import zipfile
from pathlib import Path

import pytest

from devshell.errors import ScriptExecutionError
from devshell.project import ProjectSettings, ProjectState, ShellSettings, make_options
from devshell.shell import script
from devshell.shell.script import maybe_run_script, module_name, run_script_file


@pytest.fixture(autouse=True)
def isolated_modules(monkeypatch):
    """Drop modules loaded by scripts and restore sys.path afterwards."""
    monkeypatch.setattr(sys, "path", list(sys.path))
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        sys.modules.pop(name, None)


def write_script(path: Path, marker: Path, body: str = "", shebang: bool = False) -> Path:
    lines = []
    if shebang:
        lines.append("#!/usr/bin/env python3")
    lines += [
        "from pathlib import Path",
        "",
        "def main(argv):",
        f"    Path({str(marker)!r}).write_text(repr(argv))",
    ]
    if body:
        lines.append(body)
    path.write_text("\n".join(lines) + "\n")
    return path


def write_bundle(path: Path, source: str) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("__main__.py", source)
    return path


class TestRunScriptFile:
    """Tests for run_script_file."""

    def test_plain_script_main_called_with_no_args(self, tmp_path):
        marker = tmp_path / "ran"
        path = write_script(tmp_path / "setup_db.py", marker)

        run_script_file(path)

        assert marker.read_text() == "[]"
        assert "setup_db" in sys.modules

    def test_shebang_is_skipped(self, tmp_path):
        marker = tmp_path / "ran"
        path = write_script(tmp_path / "prepare", marker, shebang=True)

        run_script_file(path)

        assert marker.read_text() == "[]"

    def test_shebang_keeps_line_numbers(self, tmp_path):
        path = tmp_path / "broken.py"
        path.write_text("#!/usr/bin/env python3\n\ndef main(argv):\n    raise RuntimeError('boom')\n")

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        assert 'line 4, in main' in exc_info.value.stack

    def test_zip_bundle(self, tmp_path):
        marker = tmp_path / "ran"
        source = f"from pathlib import Path\n\ndef main(argv):\n    Path({str(marker)!r}).write_text('zip')\n"
        path = write_bundle(tmp_path / "tool.pyz", source)

        run_script_file(path)

        assert marker.read_text() == "zip"
        assert str(path) in sys.path

    def test_failed_bundle_load_is_undone(self, tmp_path):
        path = write_bundle(tmp_path / "broken.pyz", "raise RuntimeError('at import')\n")

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        assert exc_info.value.category == script.LOAD
        assert "broken" not in sys.modules
        assert str(path) not in sys.path

    def test_exit_zero_is_success(self, tmp_path):
        path = tmp_path / "quits.py"
        path.write_text("import sys\n\ndef main(argv):\n    sys.exit(0)\n")

        assert run_script_file(path) is None

    def test_exit_nonzero_is_failure(self, tmp_path):
        path = tmp_path / "fails.py"
        path.write_text("import sys\n\ndef main(argv):\n    sys.exit(3)\n")

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        assert exc_info.value.category == script.INVOKE
        assert isinstance(exc_info.value.cause, SystemExit)

    def test_missing_file(self, tmp_path):
        path = tmp_path / "nope.py"

        with pytest.raises(ScriptExecutionError, match="Couldn't run shell script") as exc_info:
            run_script_file(path)

        assert exc_info.value.category == script.EXTRACT
        assert exc_info.value.path == str(path)

    def test_bundle_without_main(self, tmp_path):
        path = tmp_path / "empty.pyz"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("other.py", "")

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        assert exc_info.value.category == script.EXTRACT

    def test_syntax_error(self, tmp_path):
        path = tmp_path / "bad.py"
        path.write_text("def main(argv)\n    pass\n")

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        assert exc_info.value.category == script.LOAD
        assert "bad" not in sys.modules

    def test_module_name_conflict(self, tmp_path, monkeypatch):
        path = write_script(tmp_path / "taken.py", tmp_path / "ran")
        monkeypatch.setitem(sys.modules, "taken", object())

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        assert exc_info.value.category == script.LOAD

    def test_missing_entry_point(self, tmp_path):
        path = tmp_path / "noentry.py"
        path.write_text("VALUE = 1\n")

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        assert exc_info.value.category == script.INVOKE

    def test_stack_is_reported(self, tmp_path):
        path = tmp_path / "raises.py"
        path.write_text("def main(argv):\n    raise ValueError('bad input')\n")

        with pytest.raises(ScriptExecutionError) as exc_info:
            run_script_file(path)

        message = str(exc_info.value)
        assert str(path) in message
        assert "invoke:ValueError('bad input')" in message
        assert "Stack:" in message


class TestModuleName:
    def test_sanitized(self):
        assert module_name(Path("my-tool.py")) == "my_tool"
        assert module_name(Path("1st.pyz")) == "_1st"


class TestMaybeRunScript:
    """Tests for maybe_run_script."""

    def test_no_script_configured(self, tmp_path):
        assert maybe_run_script(make_options(), ProjectState(root_dir=tmp_path)) is None

    def test_disabled_from_command_line(self, tmp_path):
        project = ProjectState(
            root_dir=tmp_path,
            settings=ProjectSettings(shell=ShellSettings(script=str(tmp_path / "never.py"))),
        )
        assert maybe_run_script(make_options(script="none"), project) is None

    def test_command_line_script(self, tmp_path):
        marker = tmp_path / "ran"
        path = write_script(tmp_path / "cli_script.py", marker)

        assert maybe_run_script(make_options(script=str(path)), ProjectState(root_dir=tmp_path)) == path
        assert marker.exists()

    def test_project_script_relative_to_cwd(self, tmp_path, monkeypatch):
        marker = tmp_path / "ran"
        write_script(tmp_path / "project_script.py", marker)
        monkeypatch.chdir(tmp_path)
        project = ProjectState(
            root_dir=tmp_path,
            settings=ProjectSettings(shell=ShellSettings(script="project_script.py")),
        )

        result = maybe_run_script(make_options(), project)

        assert result == tmp_path / "project_script.py"
        assert result.is_absolute()
        assert marker.exists()

    def test_failure_is_fatal(self, tmp_path):
        with pytest.raises(ScriptExecutionError):
            maybe_run_script(make_options(script=str(tmp_path / "missing.py")), ProjectState(root_dir=tmp_path))
