"""ShellEnvironment - 替换交互 front-end / output sink

接管流程（状态机）：
1. CAPTURE: 记录当前 front-end（old）
2. TERMINATE: 终止 old
3. START: 启动新的 front-end（new）
4. AWAIT_REGISTRATION: 固定间隔轮询 new 的注册，超时即失败
5. MIGRATE_DIRECT: output 绑定到 old 的存活 unit 改绑到 new
6. MIGRATE_OWNED: output 绑定到旧组件 master 的 unit 改绑到 new
7. SWITCH_LOG_SINK: 日志输出切到 new，移除重复的 fallback handler

1-4 失败即中止（EnvironmentTakeoverError）；5-7 单个 unit / handler 的失败
被忽略，不做整体重试。迁移期间新创建的 unit 不会被追补。
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from rich.console import Console
from rich.logging import RichHandler

from .. import config
from ..errors import EnvironmentTakeoverError, UnitGoneError
from ..runtime.frontend import FrontEndFactory, start_frontend
from ..runtime.registry import Unit, UnitRegistry
from ..telemetry import get_logger, is_fallback_handler, metrics

logger = get_logger(__name__)

# 绑定 front-end 的日志 handler 的标记属性
FRONTEND_HANDLER_MARKER = "_devshell_frontend"


class TakeoverStep(Enum):
    """接管步骤"""
    CAPTURE = "capture"
    TERMINATE = "terminate"
    START = "start"
    AWAIT_REGISTRATION = "await_registration"
    MIGRATE_DIRECT = "migrate_direct"
    MIGRATE_OWNED = "migrate_owned"
    SWITCH_LOG_SINK = "switch_log_sink"
    DONE = "done"

    @property
    def fatal(self) -> bool:
        """该步骤失败是否中止接管"""
        return self in {
            TakeoverStep.CAPTURE,
            TakeoverStep.TERMINATE,
            TakeoverStep.START,
            TakeoverStep.AWAIT_REGISTRATION,
        }


@dataclass
class TakeoverResult:
    """接管结果

    Attributes:
        old: 被替换的 front-end
        new: 新 front-end
        rebound: MIGRATE_DIRECT 改绑数量
        owned_rebound: MIGRATE_OWNED 改绑数量
        raced: 改绑时已终止而跳过的 unit 数量
        removed_handlers: 移除的 fallback 日志 handler 数量
        log_sink_switched: 日志是否已切到 new
    """
    old: Unit
    new: Unit
    rebound: int = 0
    owned_rebound: int = 0
    raced: int = 0
    removed_handlers: int = 0
    log_sink_switched: bool = False


class ShellEnvironment:
    """front-end 接管

    使用示例:
        env = ShellEnvironment(get_registry())
        result = env.take_over()
    """

    def __init__(
        self,
        registry: UnitRegistry,
        frontend_factory: FrontEndFactory | None = None,
        log_root: logging.Logger | None = None,
        poll_interval: float = config.FRONTEND_POLL_INTERVAL,
        timeout: float = config.FRONTEND_REGISTER_TIMEOUT,
        remove_attempts: int = config.LOG_HANDLER_REMOVE_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._registry = registry
        self._frontend_factory = frontend_factory or start_frontend
        self._log_root = log_root or logging.getLogger()
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._remove_attempts = remove_attempts
        self._sleep = sleep
        self._step: TakeoverStep | None = None
        self._history: list[TakeoverStep] = []

    @property
    def step(self) -> TakeoverStep | None:
        return self._step

    @property
    def history(self) -> list[TakeoverStep]:
        return list(self._history)

    def _enter(self, step: TakeoverStep) -> None:
        self._step = step
        self._history.append(step)
        logger.debug(f"[Takeover] {step.value}")

    # === 主流程 ===

    def take_over(self) -> TakeoverResult:
        """执行完整接管

        Raises:
            EnvironmentTakeoverError: 步骤 1-4 失败
        """
        if self._step is not None:
            raise EnvironmentTakeoverError(self._step.value, "Front-end has already been replaced")

        old = self._fatal(TakeoverStep.CAPTURE, self._capture)
        self._fatal(TakeoverStep.TERMINATE, lambda: self._registry.terminate(old))
        self._fatal(TakeoverStep.START, lambda: self._frontend_factory(self._registry))
        new = self._fatal(TakeoverStep.AWAIT_REGISTRATION, lambda: self._await_registration(old))

        result = TakeoverResult(old=old, new=new)

        self._enter(TakeoverStep.MIGRATE_DIRECT)
        self._migrate_direct(old, new, result)

        self._enter(TakeoverStep.MIGRATE_OWNED)
        self._migrate_owned(new, result)

        self._enter(TakeoverStep.SWITCH_LOG_SINK)
        self._switch_log_sink(new, result)

        self._enter(TakeoverStep.DONE)
        logger.debug(
            f"[Takeover] {old!r} -> {new!r}: rebound={result.rebound} "
            f"owned={result.owned_rebound} raced={result.raced}"
        )
        return result

    def _fatal(self, step: TakeoverStep, action):
        self._enter(step)
        try:
            return action()
        except EnvironmentTakeoverError:
            raise
        except Exception as e:
            raise EnvironmentTakeoverError(step.value, f"Front-end takeover failed: {e!r}") from e

    # === 步骤 1-4 ===

    def _capture(self) -> Unit:
        old = self._registry.whereis(config.FRONTEND_NAME)
        if old is None:
            raise EnvironmentTakeoverError(
                TakeoverStep.CAPTURE.value, f"No unit registered as {config.FRONTEND_NAME!r}"
            )
        return old

    def _await_registration(self, old: Unit) -> Unit:
        """固定间隔轮询，直到新 front-end 注册或超时"""
        waited = 0.0
        while True:
            unit = self._registry.whereis(config.FRONTEND_NAME)
            if unit is not None and unit is not old:
                return unit
            if waited >= self._timeout:
                raise EnvironmentTakeoverError(
                    TakeoverStep.AWAIT_REGISTRATION.value,
                    f"Timeout exceeded waiting for {config.FRONTEND_NAME!r} to register itself",
                )
            self._sleep(self._poll_interval)
            waited += self._poll_interval

    # === 步骤 5-6 ===

    def _rebind(self, unit: Unit, new: Unit, result: TakeoverResult) -> bool:
        """单个 unit 改绑，终止竞争只计数不报错"""
        try:
            self._registry.set_output(unit, new)
            return True
        except UnitGoneError:
            result.raced += 1
            metrics.inc("migration.raced")
        except Exception as e:
            logger.debug(f"[Takeover] Rebind of {unit!r} failed: {e!r}")
        return False

    def _migrate_direct(self, old: Unit, new: Unit, result: TakeoverResult) -> None:
        for unit in self._registry.units():
            if unit.output is old and self._registry.is_alive(unit):
                if self._rebind(unit, new, result):
                    result.rebound += 1
                    metrics.inc("migration.rebound")

    def _migrate_owned(self, new: Unit, result: TakeoverResult) -> None:
        # 组件 master 把旧 front-end 保存在自身状态里，改绑其下属 unit
        owners = {
            unit.uid
            for unit in self._registry.units()
            if unit.role == config.COMPONENT_MASTER_ROLE and unit.uid < new.uid
        }
        if not owners:
            return
        for unit in self._registry.units():
            if unit.output is not None and unit.output.uid in owners:
                if self._rebind(unit, new, result):
                    result.owned_rebound += 1
                    metrics.inc("migration.rebound", {"owner": "component_master"})

    # === 步骤 7 ===

    def _switch_log_sink(self, new: Unit, result: TakeoverResult) -> None:
        try:
            for handler in list(self._log_root.handlers):
                if getattr(handler, FRONTEND_HANDLER_MARKER, False):
                    self._log_root.removeHandler(handler)

            handler = RichHandler(console=Console(file=new.stream), show_path=False)
            setattr(handler, FRONTEND_HANDLER_MARKER, True)
            self._log_root.addHandler(handler)
            result.log_sink_switched = True

            result.removed_handlers = self._remove_fallback_handlers()
        except Exception as e:
            # 自定义 logger 配置下可能失败
            logger.debug(f"[Takeover] Logger changes failed: {e!r}", exc_info=True)

    def _remove_fallback_handlers(self) -> int:
        """最多移除 remove_attempts 个 fallback handler，仍有残留则告警"""
        removed = 0
        for _ in range(self._remove_attempts):
            handler = next((h for h in self._log_root.handlers if is_fallback_handler(h)), None)
            if handler is None:
                return removed
            self._log_root.removeHandler(handler)
            removed += 1

        if any(is_fallback_handler(h) for h in self._log_root.handlers):
            logger.warning("[Takeover] Unable to remove simple fallback log handler")
        return removed
