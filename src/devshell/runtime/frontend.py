"""Front-end 启动

front-end 是读取交互输入、持有输出流的 unit。新 front-end 启动后
在后台线程里完成名字注册，调用方需要轮询 whereis 等待其出现。
"""

import sys
import threading
from typing import Callable, TextIO

from .. import config
from ..errors import NameConflictError, UnitGoneError
from ..telemetry import get_logger
from .registry import Unit, UnitRegistry

logger = get_logger(__name__)

# 启动新 front-end 的函数类型
FrontEndFactory = Callable[[UnitRegistry], Unit]


def start_frontend(
    registry: UnitRegistry,
    stream: TextIO | None = None,
    input: TextIO | None = None,
    register_delay: float = 0.0,
) -> Unit:
    """启动新的 front-end unit

    unit 创建后立即返回，名字注册由后台线程完成。

    Args:
        registry: unit 注册表
        stream: 输出流，默认 sys.stdout
        input: 输入流，默认 sys.stdin
        register_delay: 注册前等待时间（秒）

    Returns:
        新创建（尚未注册）的 front-end unit
    """
    unit = registry.spawn(
        config.FRONTEND_ROLE,
        stream=stream or sys.stdout,
        input=input or sys.stdin,
    )

    def _register() -> None:
        if register_delay:
            threading.Event().wait(register_delay)
        try:
            registry.register(config.FRONTEND_NAME, unit)
            logger.debug(f"[FrontEnd] Registered {unit!r}")
        except (NameConflictError, UnitGoneError) as e:
            logger.error(f"[FrontEnd] Registration failed: {e}")

    threading.Thread(target=_register, name="frontend-register", daemon=True).start()
    return unit
