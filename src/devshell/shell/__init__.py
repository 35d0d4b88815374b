"""Shell 模块

bootstrap 中的各个步骤：
- naming: 分布式节点名
- environment: front-end / output sink 接管
- script: 启动前脚本
"""

from .naming import NameMode, NameService, node, setup_name
from .environment import ShellEnvironment, TakeoverResult, TakeoverStep
from .script import maybe_run_script, run_script_file

__all__ = [
    # Naming
    "NameMode",
    "NameService",
    "node",
    "setup_name",
    # Environment
    "ShellEnvironment",
    "TakeoverResult",
    "TakeoverStep",
    # Script
    "maybe_run_script",
    "run_script_file",
]
