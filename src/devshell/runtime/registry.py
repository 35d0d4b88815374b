"""UnitRegistry - 进程级 unit 注册表

职责：
- 分配 unit 身份（uid 单调递增，uid 越小越早创建）
- 名字注册/查找（whereis）
- 枚举存活 unit（快照）
- 维护 output 绑定表（unit -> 输出所属 unit）

每次 set_output 单独加锁，彼此之间没有跨 unit 事务。
"""

import itertools
import threading
from typing import Any, TextIO

from ..errors import NameConflictError, UnitGoneError
from ..telemetry import get_logger

logger = get_logger(__name__)


class Unit:
    """进程内可独立调度的执行上下文

    Attributes:
        uid: 身份（单调递增）
        role: 创建角色（如 frontend, component_master）
        output: 输出绑定的 unit，None 表示自身即 sink
        stream: 输出流（仅 front-end 持有）
        input: 输入流（仅 front-end 持有）
        name: 注册名
        alive: 是否存活
        info: 附加信息
    """

    def __init__(
        self,
        uid: int,
        role: str,
        output: "Unit | None" = None,
        stream: TextIO | None = None,
        input: TextIO | None = None,
    ):
        self.uid = uid
        self.role = role
        self.output = output
        self.stream = stream
        self.input = input
        self.name: str | None = None
        self.alive = True
        self.info: dict[str, Any] = {}

    def sink(self) -> "Unit | None":
        """沿 output 链找到持有输出流的 unit"""
        unit: Unit | None = self
        seen: set[int] = set()
        while unit is not None and unit.stream is None:
            if unit.uid in seen:
                return None
            seen.add(unit.uid)
            unit = unit.output
        return unit

    def write(self, text: str) -> None:
        """写到当前绑定的 output sink"""
        sink = self.sink()
        if sink is None or not sink.alive:
            raise UnitGoneError(f"unit {self.uid} has no live output sink")
        sink.stream.write(text)
        sink.stream.flush()

    def __repr__(self) -> str:
        label = self.name or self.role
        state = "" if self.alive else " dead"
        return f"<Unit {self.uid} {label}{state}>"


class UnitRegistry:
    """进程级 unit 注册表"""

    def __init__(self):
        self._lock = threading.RLock()
        self._counter = itertools.count(1)
        self._units: dict[int, Unit] = {}
        self._names: dict[str, Unit] = {}

    # === 生命周期 ===

    def spawn(
        self,
        role: str,
        output: Unit | None = None,
        stream: TextIO | None = None,
        input: TextIO | None = None,
        name: str | None = None,
    ) -> Unit:
        """创建新 unit，可选同时注册名字"""
        with self._lock:
            unit = Unit(next(self._counter), role, output=output, stream=stream, input=input)
            self._units[unit.uid] = unit
            if name is not None:
                self.register(name, unit)
        logger.debug(f"[Registry] Spawned {unit!r}")
        return unit

    def terminate(self, unit: Unit) -> None:
        """终止 unit，释放其注册名"""
        with self._lock:
            unit.alive = False
            self._units.pop(unit.uid, None)
            if unit.name is not None and self._names.get(unit.name) is unit:
                del self._names[unit.name]
        logger.debug(f"[Registry] Terminated {unit!r}")

    def is_alive(self, unit: Unit) -> bool:
        with self._lock:
            return unit.alive and self._units.get(unit.uid) is unit

    # === 名字 ===

    def register(self, name: str, unit: Unit) -> None:
        """注册名字

        Raises:
            NameConflictError: 名字已被存活 unit 占用，或 unit 已有其他名字
            UnitGoneError: unit 已终止
        """
        with self._lock:
            if not self.is_alive(unit):
                raise UnitGoneError(f"cannot register {name!r}: {unit!r} is not alive")
            holder = self._names.get(name)
            if holder is not None and holder is not unit:
                raise NameConflictError(f"{name!r} is already registered to {holder!r}")
            if unit.name is not None and unit.name != name:
                raise NameConflictError(f"{unit!r} is already registered as {unit.name!r}")
            self._names[name] = unit
            unit.name = name

    def unregister(self, name: str) -> None:
        with self._lock:
            unit = self._names.pop(name, None)
            if unit is not None:
                unit.name = None

    def whereis(self, name: str) -> Unit | None:
        with self._lock:
            return self._names.get(name)

    # === 枚举 / 绑定 ===

    def units(self) -> list[Unit]:
        """存活 unit 的快照（按 uid 排序）"""
        with self._lock:
            return sorted(self._units.values(), key=lambda u: u.uid)

    def set_output(self, unit: Unit, sink: Unit) -> None:
        """重新绑定 unit 的 output

        Raises:
            UnitGoneError: unit 在此之前已终止
        """
        with self._lock:
            if not self.is_alive(unit):
                raise UnitGoneError(f"{unit!r} terminated before rebind")
            unit.output = sink

    def bound_to(self, sink: Unit) -> list[Unit]:
        """output 直接绑定到 sink 的存活 unit"""
        return [u for u in self.units() if u.output is sink]


# 进程级默认注册表（懒创建）
_default_registry: UnitRegistry | None = None


def get_registry() -> UnitRegistry:
    """获取进程级注册表

    首次调用时创建，并注册绑定到 sys.stdin/sys.stdout 的初始 front-end。
    """
    global _default_registry
    if _default_registry is None:
        import sys

        from .. import config

        registry = UnitRegistry()
        registry.spawn(
            config.FRONTEND_ROLE,
            stream=sys.stdout,
            input=sys.stdin,
            name=config.FRONTEND_NAME,
        )
        _default_registry = registry
    return _default_registry


def _reset_for_testing() -> None:
    """重置进程级注册表（仅用于测试）"""
    global _default_registry
    _default_registry = None
