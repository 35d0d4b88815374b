"""Components 模块

- types: ComponentSpec, BootOutcome, BootReport 等数据类型
- controller: ComponentController（加载/配置/启动单个组件）
- sequencer: AppBootSequencer（传递依赖加载、配置、启动编排）
"""

from .types import (
    ComponentSpec,
    ComponentInfo,
    OutcomeKind,
    BootOutcome,
    BootReport,
)
from .controller import ComponentController, StartContext
from .sequencer import AppBootSequencer

__all__ = [
    # Types
    "ComponentSpec",
    "ComponentInfo",
    "OutcomeKind",
    "BootOutcome",
    "BootReport",
    # Controller
    "ComponentController",
    "StartContext",
    # Sequencer
    "AppBootSequencer",
]
