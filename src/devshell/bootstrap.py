"""Bootstrap - 按顺序构造交互 shell

顺序：
1. 节点名（--name / --sname）
2. 依赖和测试代码路径
3. 接管 front-end / output sink
4. 启动前脚本
5. 加载/配置/启动组件（或仅重新应用配置文件）
6. 注册交互命令循环

组件必须在接管 front-end 之后启动，否则组件 master 会持有旧 front-end。

不负责：
- 进入交互循环（由调用方调用 ShellSession.run）
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from .agent import ShellAgent
from .components import AppBootSequencer, BootReport, ComponentController
from .errors import DuplicateRegistrationError
from .project import OptionMapping, ProjectState, setup_paths
from .resolver import apps_sources, resolve
from .runtime.frontend import FrontEndFactory
from .runtime.registry import UnitRegistry, get_registry
from .shell.environment import ShellEnvironment, TakeoverResult
from .shell.naming import NameService, setup_name
from .shell.script import maybe_run_script
from .sysconfig import reread_config
from .telemetry import get_logger, metrics

logger = get_logger(__name__)

# Global registry to track bootstrap state and prevent dual-construction
_current_session: "ShellSession | None" = None


@dataclass
class ShellSession:
    """Bootstrap 返回的 shell 会话"""

    options: OptionMapping
    project: ProjectState
    registry: UnitRegistry
    controller: ComponentController
    node: str
    takeover: TakeoverResult
    script: Path | None
    report: BootReport
    agent: ShellAgent

    def run(self) -> None:
        """进入交互命令循环（阻塞）"""
        self.agent.run()


def bootstrap(
    options: OptionMapping,
    project: ProjectState,
    registry: UnitRegistry | None = None,
    controller: ComponentController | None = None,
    frontend_factory: FrontEndFactory | None = None,
    name_service: NameService | None = None,
    log_root: logging.Logger | None = None,
) -> ShellSession:
    """构造 shell 会话

    Args:
        options: 已解析的命令行选项
        project: 项目状态
        registry: unit 注册表，默认进程级注册表
        controller: 组件控制器，默认新建
        frontend_factory: 启动新 front-end 的函数
        name_service: 分布式命名服务
        log_root: 接管日志输出的 logger，默认 root logger

    Returns:
        ShellSession

    Raises:
        DuplicateRegistrationError: 如果已经调用过 bootstrap
        ConfigurationError / EnvironmentTakeoverError / ScriptExecutionError: 致命错误
    """
    global _current_session

    if _current_session is not None:
        raise DuplicateRegistrationError(
            "bootstrap() has already been called. "
            "Use get_current_session() to access the existing shell."
        )

    registry = registry or get_registry()

    # 1. 节点名（冲突的选项在其他步骤之前报错）
    node = setup_name(options, name_service)

    # 2. 代码路径
    setup_paths(project)

    # 3. 接管 front-end
    takeover = ShellEnvironment(registry, frontend_factory=frontend_factory, log_root=log_root).take_over()

    # 4. 启动前脚本
    script = maybe_run_script(options, project)

    # 5. 组件
    controller = controller or ComponentController(registry)

    def apply_config() -> int:
        return reread_config(options, project, controller)

    apps = resolve(apps_sources(options, project), "apps")
    report = AppBootSequencer(controller, apply_config).boot(apps.value if apps.found else None)

    # 6. 交互命令循环
    agent = ShellAgent(registry, controller, report=report, reread_config=apply_config)
    agent.register()

    logger.info("[Bootstrap] Shell ready")
    logger.debug(f"[Bootstrap] Metrics: {metrics.snapshot()}")

    _current_session = ShellSession(
        options=options,
        project=project,
        registry=registry,
        controller=controller,
        node=node,
        takeover=takeover,
        script=script,
        report=report,
        agent=agent,
    )
    return _current_session


def get_current_session() -> "ShellSession | None":
    """获取当前 shell 会话

    如果 bootstrap() 还没调用，返回 None。
    """
    return _current_session


def _reset_for_testing() -> None:
    """重置 bootstrap 状态（仅用于测试）"""
    global _current_session
    _current_session = None
