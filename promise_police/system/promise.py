# ============================================================
# ASYNCIO-BACKED PROMISE
# ============================================================

import asyncio
import inspect
from typing import Any, Callable, Iterable, List, Optional

from promise_police.system.errors import RejectionError


class Promise:
    """
    A then/catch style promise settled on an asyncio event loop.

    ``executor(resolve, reject)`` runs synchronously inside the constructor;
    an exception it raises rejects the promise. Continuations always run as
    loop callbacks. Promises are awaitable.
    """

    def __init__(
        self,
        executor: Optional[Callable[[Callable, Callable], Any]] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        self._loop = loop or asyncio.get_running_loop()
        self._future = self._loop.create_future()
        self._settling = False
        self._adopting: Optional[asyncio.Future] = None

        if executor is not None:
            try:
                executor(self._resolve, self._reject)
            except Exception as e:
                self._reject(e)

    # --------------------------------------------------------
    # Settlement
    # --------------------------------------------------------

    def _resolve(self, value: Any = None):
        if self._settling:
            return
        if value is self:
            self._reject(TypeError("A promise cannot be resolved with itself"))
            return
        self._settling = True

        if inspect.isawaitable(value):
            self._adopting = asyncio.ensure_future(value, loop=self._loop)
            self._adopting.add_done_callback(self._adopt)
        else:
            self._future.set_result(value)

    def _reject(self, reason: Any = None):
        if self._settling:
            return
        self._settling = True

        if not isinstance(reason, BaseException):
            reason = RejectionError(reason)
        self._future.set_exception(reason)

    def _adopt(self, source: asyncio.Future):
        self._adopting = None
        if self._future.done():
            return
        if source.cancelled():
            self._future.cancel()
        elif source.exception() is not None:
            self._future.set_exception(source.exception())
        else:
            self._future.set_result(source.result())

    def cancel(self) -> bool:
        if self._future.done():
            return False
        self._settling = True
        if self._adopting is not None:
            self._adopting.cancel()
        return self._future.cancel()

    # --------------------------------------------------------
    # Continuations
    # --------------------------------------------------------

    def then(
        self,
        on_fulfilled: Optional[Callable[[Any], Any]] = None,
        on_rejected: Optional[Callable[[BaseException], Any]] = None
    ) -> "Promise":
        """Attach continuations; the returned promise settles with their outcome"""
        # Derived promises are built from the concrete class, never through
        # whatever constructor reference the caller used
        derived = type(self)(loop=self._loop)

        def settle(source: asyncio.Future):
            if source.cancelled():
                derived.cancel()
                return

            error = source.exception()
            handler = on_fulfilled if error is None else on_rejected
            if handler is None:
                if error is None:
                    derived._resolve(source.result())
                else:
                    derived._reject(error)
                return

            try:
                value = handler(source.result() if error is None else error)
            except Exception as e:
                derived._reject(e)
            else:
                derived._resolve(value)

        self._future.add_done_callback(settle)
        return derived

    def catch(self, on_rejected: Callable[[BaseException], Any]) -> "Promise":
        return self.then(None, on_rejected)

    def __await__(self):
        return self._future.__await__()

    # --------------------------------------------------------
    # Inspection
    # --------------------------------------------------------

    def get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def result(self) -> Any:
        return self._future.result()

    def exception(self) -> Optional[BaseException]:
        return self._future.exception()

    def __repr__(self) -> str:
        if not self._future.done():
            state = "pending"
        elif self._future.cancelled():
            state = "cancelled"
        elif self._future.exception() is not None:
            state = f"rejected={self._future.exception()!r}"
        else:
            state = f"fulfilled={self._future.result()!r}"
        return f"<{type(self).__name__} {state}>"

    # --------------------------------------------------------
    # Class helpers
    # --------------------------------------------------------

    @classmethod
    def resolve(cls, value: Any = None) -> "Promise":
        return cls(lambda resolve, reject: resolve(value))

    @classmethod
    def reject(cls, reason: Any = None) -> "Promise":
        return cls(lambda resolve, reject: reject(reason))

    @classmethod
    def all(cls, promises: Iterable[Any]) -> "Promise":
        """Fulfil with every value in order, or reject with the first rejection"""
        return cls._collect(list(promises), settle_rejections=False)

    @classmethod
    def all_settled(cls, promises: Iterable[Any]) -> "Promise":
        """Fulfil with one status dict per input once all of them settled"""
        return cls._collect(list(promises), settle_rejections=True)

    @classmethod
    def race(cls, promises: Iterable[Any]) -> "Promise":
        """Settle like the first input to settle"""
        items = list(promises)

        def executor(resolve, reject):
            for item in items:
                cls.resolve(item).then(resolve, reject)

        return cls(executor)

    @classmethod
    def _collect(cls, items: List[Any], settle_rejections: bool) -> "Promise":
        def executor(resolve, reject):
            if not items:
                resolve([])
                return

            results: List[Any] = [None] * len(items)
            remaining = len(items)

            def record(index: int, value: Any):
                nonlocal remaining
                results[index] = value
                remaining -= 1
                if remaining == 0:
                    resolve(results)

            for index, item in enumerate(items):
                if settle_rejections:
                    cls.resolve(item).then(
                        lambda value, i=index: record(i, {"status": "fulfilled", "value": value}),
                        lambda reason, i=index: record(i, {"status": "rejected", "reason": reason})
                    )
                else:
                    cls.resolve(item).then(lambda value, i=index: record(i, value), reject)

        return cls(executor)
