"""ComponentController - 组件加载/配置/启动

职责：
- load: 导入组件模块，读取 __component__ 声明
- env: 组件运行时配置（get_env/set_env）
- start: 创建组件 master unit（output 绑定到当前 front-end）并调用 start(context)
- stop: 调用 stop() 并终止组件的 unit

不负责：
- 传递依赖的加载/启动顺序（由 AppBootSequencer 负责）
"""

import importlib
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, ValidationError

from .. import config
from ..errors import ComponentLoadError, ComponentStartError
from ..runtime.registry import Unit, UnitRegistry
from ..telemetry import get_logger
from .types import ComponentInfo

logger = get_logger(__name__)

Importer = Callable[[str], ModuleType]


class ComponentDeclaration(BaseModel):
    """组件模块的 __component__ 声明"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    version: str = ""
    description: str = ""
    depends: list[str] = []
    env: dict[str, Any] = {}


@dataclass
class StartContext:
    """传给组件 start() 的上下文"""

    name: str
    controller: "ComponentController"
    master: Unit

    def get_env(self, key: str, default: Any = None) -> Any:
        return self.controller.get_env(self.name, key, default)

    def spawn(self, role: str = config.COMPONENT_UNIT_ROLE) -> Unit:
        """创建归属本组件的 unit（output 绑定到组件 master）"""
        unit = self.controller.registry.spawn(role, output=self.master)
        self.master.info.setdefault("units", []).append(unit)
        return unit

    def write(self, text: str) -> None:
        self.master.write(text)


class ComponentController:
    """组件控制器

    Attributes:
        registry: unit 注册表
    """

    def __init__(self, registry: UnitRegistry, importer: Importer | None = None):
        self.registry = registry
        self._importer = importer or importlib.import_module
        self._loaded: dict[str, ComponentInfo] = {}
        self._running: dict[str, Unit] = {}
        self._env: dict[str, dict[str, Any]] = {}

    # === 加载 ===

    def load(self, name: str) -> ComponentInfo:
        """加载组件（已加载直接返回）

        Raises:
            ComponentLoadError: 模块无法导入或声明不合法
        """
        if name in self._loaded:
            return self._loaded[name]

        try:
            module = self._importer(name)
        except Exception as e:
            raise ComponentLoadError(name, f"import failed: {e!r}") from e

        raw = getattr(module, config.COMPONENT_ATTRIBUTE, None)
        if raw is None:
            raise ComponentLoadError(name, f"module has no {config.COMPONENT_ATTRIBUTE} declaration")
        try:
            declaration = ComponentDeclaration.model_validate(raw)
        except ValidationError as e:
            raise ComponentLoadError(name, f"invalid declaration: {e}") from e

        info = ComponentInfo(
            name=name,
            module=module,
            version=declaration.version,
            description=declaration.description,
            depends=list(declaration.depends),
            env=dict(declaration.env),
        )
        self._loaded[name] = info

        # 默认配置不覆盖已设置的值
        env = self._env.setdefault(name, {})
        for key, value in info.env.items():
            env.setdefault(key, value)

        logger.debug(f"[Components] Loaded {name} {info.version}".rstrip())
        return info

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded

    def loaded(self) -> list[str]:
        """已加载组件（按加载顺序）"""
        return list(self._loaded)

    def dependencies(self, name: str) -> list[str]:
        info = self._loaded.get(name)
        return list(info.depends) if info else []

    # === 配置 ===

    def get_env(self, name: str, key: str, default: Any = None) -> Any:
        return self._env.get(name, {}).get(key, default)

    def set_env(self, name: str, key: str, value: Any) -> None:
        self._env.setdefault(name, {})[key] = value

    def all_env(self, name: str) -> dict[str, Any]:
        return dict(self._env.get(name, {}))

    # === 启动/停止 ===

    def is_running(self, name: str) -> bool:
        return name in self._running

    def running(self) -> list[str]:
        """运行中组件（按启动顺序）"""
        return list(self._running)

    def master_of(self, name: str) -> Unit | None:
        return self._running.get(name)

    def start(self, name: str) -> Unit:
        """启动单个已加载组件

        依赖必须已经在运行。

        Returns:
            组件 master unit

        Raises:
            ComponentStartError: 未加载、依赖未运行或 start() 抛出异常
        """
        if name in self._running:
            return self._running[name]

        info = self._loaded.get(name)
        if info is None:
            raise ComponentStartError(name, "not loaded")
        for dep in info.depends:
            if dep not in self._running:
                raise ComponentStartError(name, f"dependency {dep} not started")

        master = self.registry.spawn(
            config.COMPONENT_MASTER_ROLE,
            output=self.registry.whereis(config.FRONTEND_NAME),
        )
        master.info["component"] = name

        start = getattr(info.module, "start", None)
        if start is not None:
            try:
                start(StartContext(name=name, controller=self, master=master))
            except Exception as e:
                self._terminate_tree(master)
                raise ComponentStartError(name, repr(e)) from e

        self._running[name] = master
        return master

    def stop(self, name: str) -> bool:
        """停止组件

        Returns:
            是否在运行
        """
        master = self._running.pop(name, None)
        if master is None:
            return False

        info = self._loaded[name]
        stop = getattr(info.module, "stop", None)
        try:
            if stop is not None:
                stop()
        finally:
            self._terminate_tree(master)
        logger.info(f"[Components] Stopped {name}")
        return True

    def _terminate_tree(self, master: Unit) -> None:
        for unit in master.info.get("units", []):
            self.registry.terminate(unit)
        self.registry.terminate(master)
