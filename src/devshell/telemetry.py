"""Telemetry - 统一日志和指标入口

提供统一的日志工厂和指标 facade，便于观测性追踪。

日志格式: [module] msg
指标示例: migration.rebound, migration.raced, boot.started, boot.failed
"""

import logging
import sys
from collections import Counter
from typing import TextIO

from . import config

# 全局日志配置
_LOG_FORMAT = "[%(name)s] %(message)s"

# 进程启动时安装的 stderr handler 的标记属性
FALLBACK_MARKER = "_devshell_fallback"


def get_logger(name: str) -> logging.Logger:
    """获取带模块前缀的 logger

    Args:
        name: 模块名（通常使用 __name__）

    Returns:
        配置好的 Logger 实例
    """
    logger = logging.getLogger(name)
    return logger


def configure_logging(level: str | None = None, stream: TextIO | None = None) -> logging.Handler:
    """安装进程初始的 fallback 日志 handler

    front-end 接管前，日志直接写到 stderr。接管后由
    shell.environment 换成绑定新 front-end 的 handler，并移除这里装的 handler。

    Args:
        level: 日志级别名，None 使用 DEVSHELL_LOG_LEVEL
        stream: 输出流，默认 sys.stderr

    Returns:
        新安装的 handler
    """
    root = logging.getLogger()
    root.setLevel((level or config.LOG_LEVEL).upper())

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    setattr(handler, FALLBACK_MARKER, True)
    root.addHandler(handler)
    return handler


def is_fallback_handler(handler: logging.Handler) -> bool:
    """是否为接管前的 fallback stderr handler"""
    if getattr(handler, FALLBACK_MARKER, False):
        return True
    # logging.basicConfig() 装的 handler 也算
    if type(handler) is logging.StreamHandler:
        return handler.stream in (sys.stderr, sys.__stderr__)
    return False


CounterKey = tuple[str, tuple[tuple[str, str], ...]]


class Metrics:
    """进程内计数器

    计数器按 (指标名, 排序后的标签) 区分，snapshot() 供启动结束时输出摘要。
    """

    def __init__(self):
        self._counters: Counter[CounterKey] = Counter()

    def inc(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """递增计数器

        Args:
            name: 指标名（如 "migration.raced"）
            labels: 可选标签（如 {"source": "command_line"}）
            value: 递增值，默认 1
        """
        if config.METRICS_ENABLED:
            self._counters[_counter_key(name, labels)] += value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        return self._counters[_counter_key(name, labels)]

    def snapshot(self, prefix: str = "") -> dict[str, int]:
        """以 name{k=v,...} 形式返回计数，可按指标名前缀过滤"""
        return {
            _format_key(key): count
            for key, count in sorted(self._counters.items())
            if key[0].startswith(prefix)
        }

    def reset(self) -> None:
        self._counters.clear()


def _counter_key(name: str, labels: dict[str, str] | None) -> CounterKey:
    return name, tuple(sorted((labels or {}).items()))


def _format_key(key: CounterKey) -> str:
    name, labels = key
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


# 全局指标实例
metrics = Metrics()
