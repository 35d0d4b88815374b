"""ShellAgent - 常驻交互命令循环

bootstrap 完成后进入的交互循环。进程内只能注册一次（AGENT_NAME），
从当前 front-end 读取输入、写出输出。

命名空间中提供：
- apps(): 运行中组件
- env(name): 组件配置
- reread_config(): 重新应用配置文件
- metrics(prefix): 进程内计数器
- report: 最近一次 BootReport
- registry / controller
"""

import code
import contextlib
from typing import Any, Callable

from . import config
from .components import BootReport, ComponentController
from .errors import DuplicateRegistrationError, NameConflictError
from .runtime.registry import Unit, UnitRegistry
from .telemetry import get_logger, metrics

logger = get_logger(__name__)

BANNER = "devshell - project components loaded. Use apps(), env(name), reread_config()."


class UnitStream:
    """文件接口，写入转发到 unit 当前的 output sink"""

    def __init__(self, unit: Unit):
        self._unit = unit

    def write(self, text: str) -> int:
        self._unit.write(text)
        return len(text)

    def flush(self) -> None:
        pass


class AgentConsole(code.InteractiveConsole):
    """经由 agent 读写当前 front-end 的交互控制台"""

    def __init__(self, agent: "ShellAgent", locals: dict[str, Any] | None = None):
        super().__init__(locals=locals)
        self._agent = agent

    def raw_input(self, prompt: str = "") -> str:
        return self._agent.read_line(prompt)

    def write(self, data: str) -> None:
        self._agent.write(data)


class ShellAgent:
    """交互命令循环"""

    def __init__(
        self,
        registry: UnitRegistry,
        controller: ComponentController,
        report: BootReport | None = None,
        reread_config: Callable[[], int] | None = None,
    ):
        self.registry = registry
        self.controller = controller
        self.report = report
        self._reread_config = reread_config or (lambda: 0)
        self._unit: Unit | None = None

    @property
    def unit(self) -> Unit | None:
        return self._unit

    def register(self) -> Unit:
        """以 AGENT_NAME 注册

        Raises:
            DuplicateRegistrationError: 已存在注册的 agent
        """
        frontend = self.registry.whereis(config.FRONTEND_NAME)
        unit = self.registry.spawn(config.AGENT_ROLE, output=frontend)
        try:
            self.registry.register(config.AGENT_NAME, unit)
        except NameConflictError as e:
            self.registry.terminate(unit)
            raise DuplicateRegistrationError(f"Shell agent is already running: {e}") from e
        self._unit = unit
        logger.debug(f"[Agent] Registered as {config.AGENT_NAME}")
        return unit

    def namespace(self) -> dict[str, Any]:
        return {
            "agent": self,
            "registry": self.registry,
            "controller": self.controller,
            "report": self.report,
            "apps": self.controller.running,
            "env": self.controller.all_env,
            "reread_config": self.reread_config,
            "metrics": metrics.snapshot,
        }

    def reread_config(self) -> int:
        applied = self._reread_config()
        logger.info(f"[Agent] Re-applied {applied} setting(s)")
        return applied

    def run(self, banner: str | None = BANNER) -> None:
        """进入交互循环，直到输入 EOF 或 exit()"""
        if self._unit is None:
            self.register()

        console = AgentConsole(self, locals=self.namespace())
        try:
            # 表达式结果和 print 也写到当前 front-end
            with contextlib.redirect_stdout(UnitStream(self._unit)):
                console.interact(banner=banner, exitmsg="")
        finally:
            self.registry.terminate(self._unit)
            self._unit = None

    def read_line(self, prompt: str = "") -> str:
        frontend = self.registry.whereis(config.FRONTEND_NAME)
        if frontend is None or frontend.input is None:
            raise EOFError
        self.write(prompt)
        line = frontend.input.readline()
        if not line:
            raise EOFError
        return line.rstrip("\n")

    def write(self, text: str) -> None:
        self._unit.write(text)
