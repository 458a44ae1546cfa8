"""
Detect futures and promises that are created but never awaited, chained or caught.

    import asyncio
    import promise_police

    loop = asyncio.get_running_loop()
    promise_police.install(loop, "create_future", timeout=5)
"""

from promise_police.config.settings import SupervisionConfig, resolve_config
from promise_police.system.errors import RejectionError, UnhandledFutureError
from promise_police.system.interceptor import install, installed, uninstall
from promise_police.system.promise import Promise
from promise_police.system.supervisor import (
    FutureSupervisor,
    SupervisedFuture,
    is_supervised,
    supervise,
)
from promise_police.utils.logger import setup_logger

__all__ = [
    "FutureSupervisor",
    "Promise",
    "RejectionError",
    "SupervisedFuture",
    "SupervisionConfig",
    "UnhandledFutureError",
    "install",
    "installed",
    "is_supervised",
    "resolve_config",
    "setup_logger",
    "supervise",
    "uninstall",
]
