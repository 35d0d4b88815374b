"""Project state - 解析后的命令行选项与项目/发布配置

- OptionMapping: 命令行选项（只读）
- ShellSettings / ReleaseSettings / ProjectSettings: devshell.yaml 结构
- ProjectState: 项目根目录 + 配置
- setup_paths: 把依赖和测试目录加入 sys.path
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import config
from .errors import ConfigurationError
from .telemetry import get_logger

logger = get_logger(__name__)

# 命令行选项键
OPTION_KEYS = ("config", "name", "sname", "script", "apps")

OptionMapping = Mapping[str, Any]


def make_options(**values: Any) -> OptionMapping:
    """构造只读选项映射，值为 None 的键视为未给出"""
    return MappingProxyType({k: v for k, v in values.items() if v is not None})


class ShellSettings(BaseModel):
    """项目配置中 shell 作用域"""

    config: str | None = None  # 配置文件路径（相对项目根目录）
    script: str | None = None  # 启动前执行的脚本
    apps: list[Any] | None = None  # 启动的组件列表


class ReleaseSettings(BaseModel):
    """发布配置"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str | None = None
    version: str | None = None
    sys_config: str | None = None  # 发布的系统配置文件
    apps: list[Any] | None = None  # 发布声明的组件列表


class ProjectSettings(BaseModel):
    """devshell.yaml 顶层结构"""

    shell: ShellSettings = Field(default_factory=ShellSettings)
    release: ReleaseSettings | None = None
    base_dir: str = config.DEFAULT_BASE_DIR
    dep_paths: list[str] = []
    project_dirs: list[str] = []


@dataclass
class ProjectState:
    """项目状态

    Attributes:
        root_dir: 项目根目录（构建根）
        settings: 项目配置
    """

    root_dir: Path
    settings: ProjectSettings = field(default_factory=ProjectSettings)

    def scope(self, name: str = config.SHELL_SCOPE) -> dict[str, Any]:
        """作用域下显式给出的配置项"""
        section = getattr(self.settings, name, None)
        if section is None:
            return {}
        return section.model_dump(exclude_none=True)

    @property
    def release(self) -> ReleaseSettings | None:
        return self.settings.release

    @property
    def base_dir(self) -> Path:
        return self.root_dir / self.settings.base_dir

    def code_paths(self) -> list[Path]:
        """依赖代码目录"""
        return [self.root_dir / p for p in self.settings.dep_paths]

    def project_dirs(self) -> list[Path]:
        return [self.root_dir / p for p in self.settings.project_dirs]


def load_project(root_dir: str | Path = ".", filename: str = config.PROJECT_CONFIG_FILE) -> ProjectState:
    """读取项目配置

    文件不存在视为空配置。

    Raises:
        ConfigurationError: 文件无法解析或结构不合法
    """
    root = Path(root_dir).resolve()
    path = root / filename
    if not path.exists():
        logger.debug(f"[Project] No {filename} in {root}, using defaults")
        return ProjectState(root_dir=root)

    try:
        raw = yaml.safe_load(path.read_text()) or {}
        settings = ProjectSettings.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigurationError(f"Invalid project config {path}: {e}") from e

    logger.debug(f"[Project] Loaded {path}")
    return ProjectState(root_dir=root, settings=settings)


def setup_paths(project: ProjectState) -> list[str]:
    """把依赖代码目录和测试目录加入 sys.path

    依赖目录放在最前面；项目目录下的 test 目录和 <base_dir>/test 追加在后，
    不存在的目录忽略。

    Returns:
        新加入的路径
    """
    added: list[str] = []

    for path in reversed(project.code_paths()):
        entry = str(path)
        if entry not in sys.path:
            sys.path.insert(0, entry)
            added.append(entry)

    test_dirs = [d / "test" for d in project.project_dirs()]
    test_dirs.append(project.base_dir / "test")
    for path in test_dirs:
        entry = str(path)
        if path.is_dir() and entry not in sys.path:
            sys.path.append(entry)
            added.append(entry)

    if added:
        logger.debug(f"[Project] Added code paths: {added}")
    return added
