# ============================================================
# FUTURE SUPERVISION ENGINE
# ============================================================

import asyncio
import traceback
import weakref
from functools import cached_property
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from promise_police.config.settings import SupervisionConfig, resolve_config
from promise_police.system.errors import UNHANDLED_MESSAGE, UnhandledFutureError
from promise_police.utils.helpers import (
    capture_stack,
    format_duration,
    format_stack,
    strip_internal_frames,
)
from promise_police.utils.logger import get_logger


logger = get_logger("supervisor")

CONTEXT_HEADER = "Future has not been awaited, chained or caught! Created at (most recent call last):"

# Live wrappers by id() of the future they wrap. A wrapper holds its future, so
# an id stays unique for as long as its entry exists.
_supervised: "weakref.WeakValueDictionary[int, SupervisedFuture]" = weakref.WeakValueDictionary()


class CreationContext:
    """Call stack captured when a future was put under supervision"""

    def __init__(self, stack: traceback.StackSummary):
        self.stack = stack

    @cached_property
    def text(self) -> str:
        return format_stack(self.stack, CONTEXT_HEADER)

    def tidy_text(self) -> str:
        """Stack text without promise_police's own frames"""
        return format_stack(strip_internal_frames(self.stack), CONTEXT_HEADER)


class SupervisedFuture:
    """
    Decorates a future and records whether anything ever inspected it.

    then() is chaining: it marks this future handled and may supervise the
    derived future. catch(), await, result(), exception() and
    add_done_callback() are terminal handling. Every other attribute is
    forwarded to the wrapped future untouched.
    """

    observed = True

    def __init__(self, future: Any, supervisor: "FutureSupervisor", creation_context: CreationContext):
        self._future = future
        self._supervisor = supervisor
        self.creation_context = creation_context
        self.handled = False

    @property
    def wrapped(self) -> Any:
        return self._future

    def then(self, *args, **kwargs):
        then = self._future.then
        self.handled = True
        derived = then(*args, **kwargs)

        if self._supervisor.continues_chain(args, kwargs):
            return self._supervisor.supervise(derived)
        return derived

    def catch(self, *args, **kwargs):
        catch = self._future.catch
        self.handled = True
        return catch(*args, **kwargs)

    def __await__(self):
        awaitable = self._future.__await__
        self.handled = True
        return awaitable()

    def result(self):
        result = self._future.result
        self.handled = True
        return result()

    def exception(self):
        exception = self._future.exception
        self.handled = True
        return exception()

    def add_done_callback(self, fn, **kwargs):
        add_done_callback = self._future.add_done_callback
        self.handled = True
        return add_done_callback(fn, **kwargs)

    # asyncio.isfuture() looks this up on the class; forwarding it keeps
    # wrapped asyncio futures usable by loop internals
    @property
    def _asyncio_future_blocking(self):
        return getattr(self._future, "_asyncio_future_blocking", None)

    @_asyncio_future_blocking.setter
    def _asyncio_future_blocking(self, value):
        self._future._asyncio_future_blocking = value

    def __getattr__(self, name: str):
        if name == "_future":
            raise AttributeError(name)
        return getattr(self._future, name)

    def __repr__(self) -> str:
        return f"<SupervisedFuture handled={self.handled} {self._future!r}>"


def report_unhandled(error: UnhandledFutureError):
    """Emit an unhandled-future diagnostic as a warning"""
    logger.warning(
        f"{UNHANDLED_MESSAGE} (no handler after {format_duration(error.timeout)}):\n"
        f"{error.tidy_stack}"
    )


def _loop_for(future: Any) -> Optional[asyncio.AbstractEventLoop]:
    get_loop = getattr(future, "get_loop", None)
    if callable(get_loop):
        return get_loop()
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class FutureSupervisor:
    """Puts futures under supervision according to one resolved configuration"""

    def __init__(
        self,
        config: Optional[SupervisionConfig] = None,
        capture_stack: Callable[[], traceback.StackSummary] = capture_stack,
        reporter: Optional[Callable[[UnhandledFutureError], Any]] = None
    ):
        self.config = config if config is not None else resolve_config()
        self._capture_stack = capture_stack
        self._reporter = reporter or report_unhandled

    def supervise(self, future: Any) -> Any:
        """
        Wrap a future so it is reported unless handled before the deadline.

        Returns the wrapper, an existing wrapper for the same future, or the
        future itself when its creation stack matches the ignore list.
        """
        if isinstance(future, SupervisedFuture):
            return future

        existing = _supervised.get(id(future))
        if existing is not None and existing.wrapped is future:
            return existing

        context = CreationContext(self._capture_stack())
        if self.is_ignored(context):
            logger.debug(f"Future created at an ignored site, not supervising {future!r}")
            return future

        supervised = SupervisedFuture(future, self, context)
        self._arm_deadline(supervised)
        _supervised[id(future)] = supervised
        return supervised

    def is_ignored(self, context: CreationContext) -> bool:
        text = context.text
        return any(pattern.search(text) for pattern in self.config.ignore_list)

    def continues_chain(self, args: Tuple, kwargs: Dict[str, Any]) -> bool:
        """Decide whether the future returned by then(*args, **kwargs) stays supervised"""
        on_rejected = args[1] if len(args) >= 2 else kwargs.get("on_rejected")
        if on_rejected is not None and self.config.two_functions_complete_chain:
            return False
        return self.config.check_chains

    def _arm_deadline(self, supervised: SupervisedFuture):
        loop = _loop_for(supervised.wrapped)
        if loop is None or loop.is_closed():
            logger.warning(f"No usable event loop, deadline not armed for {supervised!r}")
            return
        # Never cancelled: once handled, the callback finds nothing to do
        loop.call_later(self.config.timeout, self._check_deadline, supervised)

    def _check_deadline(self, supervised: SupervisedFuture):
        if supervised.handled:
            return

        error = UnhandledFutureError(supervised.creation_context, self.config.timeout)
        if self.config.throw_error:
            raise error
        self._reporter(error)


def supervise(
    future: Any,
    options: Optional[Union[Mapping[str, Any], SupervisionConfig]] = None,
    **overrides
) -> Any:
    """Supervise a single future outside of any installed constructor"""
    return FutureSupervisor(resolve_config(options, **overrides)).supervise(future)


def is_supervised(obj: Any) -> bool:
    return isinstance(obj, SupervisedFuture)
