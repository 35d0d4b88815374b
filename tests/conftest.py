"""Pytest 配置"""

import io
import logging
import types

import pytest

from devshell import bootstrap as bootstrap_module
from devshell import config
from devshell.runtime import registry as registry_module
from devshell.runtime.registry import UnitRegistry
from devshell.shell import naming
from devshell.telemetry import metrics


@pytest.fixture(autouse=True)
def reset_state():
    """每次测试前后重置进程级状态"""
    metrics.reset()
    naming._reset_for_testing()
    bootstrap_module._reset_for_testing()
    registry_module._reset_for_testing()
    yield
    metrics.reset()
    naming._reset_for_testing()
    bootstrap_module._reset_for_testing()
    registry_module._reset_for_testing()


@pytest.fixture
def registry():
    """带初始 front-end 的注册表"""
    reg = UnitRegistry()
    reg.spawn(
        config.FRONTEND_ROLE,
        stream=io.StringIO(),
        input=io.StringIO(),
        name=config.FRONTEND_NAME,
    )
    return reg


@pytest.fixture
def log_root():
    """隔离的 logger，避免修改 root logger"""
    logger = logging.getLogger("devshell-test-root")
    logger.handlers.clear()
    yield logger
    logger.handlers.clear()


def make_component(name, depends=(), env=None, start=None, stop=None, version="1.0"):
    """构造组件模块"""
    module = types.ModuleType(name)
    module.__component__ = {
        "version": version,
        "depends": list(depends),
        "env": dict(env or {}),
    }
    if start is not None:
        module.start = start
    if stop is not None:
        module.stop = stop
    return module


class FakeImporter:
    """按名字返回预置模块，记录导入次数"""

    def __init__(self, *modules):
        self.modules = {m.__name__: m for m in modules}
        self.calls: list[str] = []

    def __call__(self, name):
        self.calls.append(name)
        if name not in self.modules:
            raise ModuleNotFoundError(f"No module named {name!r}")
        return self.modules[name]


@pytest.fixture
def sync_frontend():
    """同步注册的 front-end factory"""

    def factory(reg):
        unit = reg.spawn(config.FRONTEND_ROLE, stream=io.StringIO(), input=io.StringIO())
        reg.register(config.FRONTEND_NAME, unit)
        return unit

    return factory


@pytest.fixture
def component():
    """组件模块构造函数"""
    return make_component


@pytest.fixture
def importer_for():
    """FakeImporter 构造函数"""
    return FakeImporter
