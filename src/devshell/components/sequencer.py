"""AppBootSequencer - 组件启动编排

流程：
1. 组件列表为空（未配置）时只重新应用配置文件
2. 规范化组件列表，深度优先加载组件及其传递依赖（每个组件只尝试加载一次）
3. 应用配置文件（必须在启动前，组件初始化时可见）
4. 按请求顺序启动非 load-only 组件，依赖先于依赖方启动
5. 每个组件输出一行结果

单个组件失败不会中断其他组件。
"""

from typing import Any, Callable, Iterable

from ..errors import ComponentLoadError, ComponentStartError
from ..telemetry import get_logger, metrics
from .controller import ComponentController
from .types import BootOutcome, BootReport, ComponentSpec, OutcomeKind

logger = get_logger(__name__)

# 应用配置文件的回调，返回应用的配置项数量
ConfigApplier = Callable[[], int]

DEV_TOOL_WARNING = (
    "The development shell is a development tool; to deploy "
    "components in production, consider building a release"
)


class AppBootSequencer:
    """组件启动编排器

    使用示例:
        sequencer = AppBootSequencer(controller, apply_config=lambda: 0)
        report = sequencer.boot(["web", ("db", "1.2"), ("tools", "load")])
    """

    def __init__(self, controller: ComponentController, apply_config: ConfigApplier | None = None):
        self._controller = controller
        self._apply_config = apply_config or (lambda: 0)

    def boot(self, apps: Iterable[Any] | None) -> BootReport:
        """加载、配置并启动组件

        Args:
            apps: 组件列表，None 表示未配置

        Returns:
            BootReport
        """
        report = BootReport()

        if apps is None:
            report.config_applied = self._apply_config()
            return report

        specs = self._normalize(apps, report)

        # 1. 加载
        load_failed: dict[str, str] = {}
        for spec in specs:
            self._load_tree(spec.name, report, load_failed)

        # 2. 配置
        report.config_applied = self._apply_config()

        # 3. 启动
        logger.warning(f"[Boot] {DEV_TOOL_WARNING}")
        attempted: dict[str, str | None] = {}
        for spec in specs:
            if spec.load_only or spec.name in load_failed:
                continue
            self._ensure_started(spec.name, report, load_failed, attempted, ())

        self._log_report(report)
        return report

    # === 规范化 ===

    def _normalize(self, apps: Iterable[Any], report: BootReport) -> list[ComponentSpec]:
        specs: list[ComponentSpec] = []
        seen: set[str] = set()
        for raw in apps:
            try:
                spec = ComponentSpec.parse(raw)
            except ValueError as e:
                report.add(BootOutcome.load_failed(str(raw), str(e)))
                continue
            if spec.name not in seen:
                seen.add(spec.name)
                specs.append(spec)
        return specs

    # === 加载 ===

    def _load_tree(self, name: str, report: BootReport, load_failed: dict[str, str]) -> None:
        """加载组件，再深度优先加载其依赖；已加载或已失败的组件跳过"""
        if self._controller.is_loaded(name) or name in load_failed:
            return
        try:
            info = self._controller.load(name)
        except ComponentLoadError as e:
            load_failed[name] = e.reason
            report.add(BootOutcome.load_failed(name, e.reason))
            return
        for dep in info.depends:
            self._load_tree(dep, report, load_failed)

    # === 启动 ===

    def _ensure_started(
        self,
        name: str,
        report: BootReport,
        load_failed: dict[str, str],
        attempted: dict[str, str | None],
        path: tuple[str, ...],
    ) -> str | None:
        """启动组件及其依赖

        Returns:
            None 表示已运行；否则为失败原因
        """
        if self._controller.is_running(name):
            return None
        if name in attempted:
            return attempted[name]
        if name in path:
            return f"circular dependency {' -> '.join(path + (name,))}"

        if not self._controller.is_loaded(name):
            self._load_tree(name, report, load_failed)
            if name in load_failed:
                attempted[name] = load_failed[name]
                return attempted[name]

        chain = path + (name,)
        for dep in self._controller.dependencies(name):
            failure = self._ensure_started(dep, report, load_failed, attempted, chain)
            if failure is None:
                continue
            if dep in load_failed:
                reason = f"dependency {dep} not loaded"
            elif dep in chain:
                reason = failure
            else:
                reason = f"dependency {dep} failed to start"
            return self._fail(name, reason, report, attempted)

        try:
            self._controller.start(name)
        except ComponentStartError as e:
            return self._fail(name, e.reason, report, attempted)

        attempted[name] = None
        report.add(BootOutcome.started(name))
        return None

    def _fail(
        self,
        name: str,
        reason: str,
        report: BootReport,
        attempted: dict[str, str | None],
    ) -> str:
        attempted[name] = reason
        report.add(BootOutcome.start_failed(name, reason))
        return reason

    # === 报告 ===

    def _log_report(self, report: BootReport) -> None:
        for outcome in report.outcomes:
            if outcome.kind == OutcomeKind.STARTED:
                logger.info(f"[Boot] {outcome.format_line()}")
                metrics.inc("boot.started")
            else:
                logger.error(f"[Boot] {outcome.format_line()}")
                metrics.inc("boot.failed", {"kind": outcome.kind.value})
