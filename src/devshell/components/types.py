"""组件模块数据类型定义

包含：
- ComponentSpec: 要启动的组件（可带版本约束、load-only 标记）
- ComponentInfo: 已加载组件的元数据
- OutcomeKind / BootOutcome: 单个组件的启动结果
- BootReport: 一次启动的结果汇总
"""

from dataclasses import dataclass, field
from enum import Enum
from types import ModuleType
from typing import Any

from rich.text import Text

# 标记 load-only 的关键字
LOAD_ONLY = "load"


@dataclass(frozen=True)
class ComponentSpec:
    """要启动的组件

    Attributes:
        name: 组件名（即模块名）
        version: 版本约束，仅记录
        load_only: 只加载不启动
    """
    name: str
    version: str | None = None
    load_only: bool = False

    @classmethod
    def parse(cls, raw: Any) -> "ComponentSpec":
        """规范化组件描述

        支持：
        - "name"
        - ("name", "load")           只加载
        - ("name", version)
        - ("name", version, "load")  只加载
        - {"name": ..., "version": ..., "load_only": ...}

        Raises:
            ValueError: 无法识别的格式
        """
        if isinstance(raw, ComponentSpec):
            return raw
        if isinstance(raw, str) and raw:
            return cls(raw)
        if isinstance(raw, dict) and isinstance(raw.get("name"), str):
            return cls(
                raw["name"],
                version=_version(raw.get("version")),
                load_only=_is_load_only(raw.get("load_only")),
            )
        if isinstance(raw, (list, tuple)) and raw and isinstance(raw[0], str):
            if len(raw) == 2:
                if raw[1] == LOAD_ONLY:
                    return cls(raw[0], load_only=True)
                return cls(raw[0], version=_version(raw[1]))
            if len(raw) == 3:
                return cls(raw[0], version=_version(raw[1]), load_only=_is_load_only(raw[2]))
        raise ValueError(f"Unrecognized component spec: {raw!r}")


def _is_load_only(value: Any) -> bool:
    return value is True or value == LOAD_ONLY


def _version(value: Any) -> str | None:
    return None if value is None else str(value)


@dataclass
class ComponentInfo:
    """已加载组件

    Attributes:
        name: 组件名
        module: 组件模块
        version: 声明的版本
        description: 描述
        depends: 依赖的组件名（按声明顺序）
        env: 默认配置
    """
    name: str
    module: ModuleType
    version: str = ""
    description: str = ""
    depends: list[str] = field(default_factory=list)
    env: dict[str, Any] = field(default_factory=dict)


class OutcomeKind(Enum):
    """组件启动结果"""
    STARTED = "started"
    LOAD_FAILED = "load_failed"
    START_FAILED = "start_failed"

    @property
    def failed(self) -> bool:
        return self != OutcomeKind.STARTED

    @property
    def color(self) -> str:
        colors = {
            OutcomeKind.STARTED: "green",
            OutcomeKind.LOAD_FAILED: "red",
            OutcomeKind.START_FAILED: "red",
        }
        return colors[self]


@dataclass(frozen=True)
class BootOutcome:
    """单个组件的启动结果（终态）"""
    component: str
    kind: OutcomeKind
    reason: str = ""

    @classmethod
    def started(cls, component: str) -> "BootOutcome":
        return cls(component, OutcomeKind.STARTED)

    @classmethod
    def load_failed(cls, component: str, reason: str) -> "BootOutcome":
        return cls(component, OutcomeKind.LOAD_FAILED, reason)

    @classmethod
    def start_failed(cls, component: str, reason: str) -> "BootOutcome":
        return cls(component, OutcomeKind.START_FAILED, reason)

    def format_line(self) -> str:
        """格式化为一行报告"""
        if self.kind == OutcomeKind.STARTED:
            return f"Booted {self.component}"
        if self.kind == OutcomeKind.LOAD_FAILED:
            return f"Failed to load {self.component} for reason {self.reason}"
        return f"Failed to boot {self.component} for reason {self.reason}"


@dataclass
class BootReport:
    """一次启动的结果汇总

    Attributes:
        outcomes: 按产生顺序排列的结果
        config_applied: 本次应用的配置项数量
    """
    outcomes: list[BootOutcome] = field(default_factory=list)
    config_applied: int = 0

    def add(self, outcome: BootOutcome) -> None:
        self.outcomes.append(outcome)

    def outcome_for(self, component: str) -> BootOutcome | None:
        for outcome in self.outcomes:
            if outcome.component == component:
                return outcome
        return None

    @property
    def started(self) -> list[str]:
        return [o.component for o in self.outcomes if o.kind == OutcomeKind.STARTED]

    @property
    def failures(self) -> list[BootOutcome]:
        return [o for o in self.outcomes if o.kind.failed]

    @property
    def ok(self) -> bool:
        return not self.failures

    def lines(self) -> list[str]:
        return [o.format_line() for o in self.outcomes]

    def render(self) -> Text:
        """渲染为 rich Text（每个组件一行）"""
        text = Text()
        for outcome in self.outcomes:
            text.append(outcome.format_line() + "\n", style=outcome.kind.color)
        return text
