# ============================================================
# CONSTRUCTOR INTERCEPTOR
# ============================================================

import functools
import inspect
from contextlib import contextmanager
from typing import Any, Mapping, Optional, Union

from promise_police.config.settings import SupervisionConfig, resolve_config, settings
from promise_police.system.supervisor import FutureSupervisor
from promise_police.utils.logger import get_logger


logger = get_logger("interceptor")

# Marks replacements whose original was looked up through the class rather
# than set on the target itself
_INHERITED_MARKER = "__promise_police_inherited__"


def _supervising_class(original: type, supervisor: FutureSupervisor) -> type:
    """
    Subclass ``original`` so that constructing it yields supervised futures.

    Static and class-level helpers resolve through the original as the base
    class; helpers that build instances with ``cls(...)`` go through the
    replacement and are supervised as well.
    """

    def __new__(cls, *args, **kwargs):
        return supervisor.supervise(original(*args, **kwargs))

    namespace = {
        "__new__": __new__,
        "__module__": original.__module__,
        "__qualname__": original.__qualname__,
        "__doc__": original.__doc__,
        "__wrapped__": original,
        "__supervisor__": supervisor,
    }
    return type(original)(original.__name__, (original,), namespace)


def _supervising_factory(original: Any, supervisor: FutureSupervisor) -> Any:
    def factory(*args, **kwargs):
        return supervisor.supervise(original(*args, **kwargs))

    # A class __dict__ holds its methods, not attributes worth carrying over
    updated = () if inspect.isclass(original) else functools.WRAPPER_UPDATES
    functools.update_wrapper(factory, original, updated=updated)
    factory.__supervisor__ = supervisor
    return factory


def install(
    target: Any,
    name: str,
    options: Optional[Union[Mapping[str, Any], SupervisionConfig]] = None,
    **overrides
) -> None:
    """
    Replace ``target.<name>`` with a constructor that supervises every future it creates.

    ``target.<name>`` may be a future class (``then``/``catch`` style promises,
    ``asyncio.Future``) or a factory such as ``loop.create_future``.
    Installing again replaces the earlier supervision instead of stacking it.
    """
    if not settings.ENABLED:
        logger.info(f"Supervision disabled, leaving {name!r} untouched")
        return

    current = getattr(target, name)
    inherited = name not in getattr(target, "__dict__", {})
    if getattr(current, "__supervisor__", None) is not None:
        inherited = getattr(current, _INHERITED_MARKER, inherited)
        current = current.__wrapped__

    config = resolve_config(options, **overrides)
    supervisor = FutureSupervisor(config)

    replacement = None
    if inspect.isclass(current):
        try:
            replacement = _supervising_class(current, supervisor)
        except TypeError as e:
            # Final types cannot be subclassed; their class helpers stay unsupervised
            logger.warning(f"Cannot subclass {current.__qualname__} ({e}), wrapping it as a factory")
    if replacement is None:
        replacement = _supervising_factory(current, supervisor)
    setattr(replacement, _INHERITED_MARKER, inherited)

    setattr(target, name, replacement)
    logger.debug(
        f"Supervising futures from {name!r} "
        f"(timeout={config.timeout}s, check_chains={config.check_chains}, "
        f"throw_error={config.throw_error})"
    )


def uninstall(target: Any, name: str) -> bool:
    """Restore the original constructor; returns False if nothing was installed"""
    current = getattr(target, name, None)
    if getattr(current, "__supervisor__", None) is None:
        return False

    if getattr(current, _INHERITED_MARKER, False):
        delattr(target, name)
    else:
        setattr(target, name, current.__wrapped__)
    logger.debug(f"Stopped supervising futures from {name!r}")
    return True


@contextmanager
def installed(
    target: Any,
    name: str,
    options: Optional[Union[Mapping[str, Any], SupervisionConfig]] = None,
    **overrides
):
    """Supervise ``target.<name>`` for the duration of a with-block"""
    install(target, name, options, **overrides)
    try:
        yield getattr(target, name)
    finally:
        uninstall(target, name)
