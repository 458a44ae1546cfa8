import math
import os
import re
from datetime import timedelta
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from promise_police.utils.logger import get_logger


logger = get_logger("settings")


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = Field(default=None, description="Log file path, console only when unset")
    JSON_LOGS: bool = False
    OPTIONS_FILE: Optional[str] = Field(default=None, description="YAML file with supervision option overrides")
    ENABLED: bool = Field(default=True, description="Global switch for install()")

    model_config = SettingsConfigDict(
        env_prefix="PROMISE_POLICE_",
        env_file=".env",
        extra="ignore"
    )


# Event-loop transport internals create and consume their own waiter futures
DEFAULT_IGNORE_LIST = (
    re.compile(r"asyncio[\\/]selector_events\.py"),
    re.compile(r"asyncio[\\/]proactor_events\.py"),
    re.compile(r"asyncio[\\/]sslproto\.py"),
)


class SupervisionConfig(BaseModel):
    """Supervision options, resolved once per install"""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    timeout: float = Field(
        default=2.0,
        description="Seconds before an unhandled future is reported"
    )
    ignore_list: Tuple[re.Pattern, ...] = Field(
        default=DEFAULT_IGNORE_LIST,
        alias="ignoreList",
        description="Creation-stack patterns exempt from supervision"
    )
    # If False, only the first future created is checked, not futures returned by then()
    check_chains: bool = Field(default=True, alias="checkChains")
    # True: then(on_ok, on_fail) completes a chain. False: only catch() does.
    two_functions_complete_chain: bool = Field(default=True, alias="twoFunctionsCompleteChain")
    throw_error: bool = Field(default=False, alias="throwError")

    @field_validator("timeout", mode="before")
    @classmethod
    def coerce_timeout(cls, v):
        if isinstance(v, timedelta):
            return v.total_seconds()
        try:
            seconds = float(v) if not isinstance(v, bool) else None
        except (TypeError, ValueError):
            seconds = None
        if seconds is None or not math.isfinite(seconds) or seconds < 0:
            default = cls.model_fields["timeout"].default
            logger.warning(f"Invalid timeout {v!r}, using the default of {default}s")
            return default
        return seconds

    @field_validator("ignore_list", mode="before")
    @classmethod
    def compile_ignore_list(cls, v):
        if v is None:
            return ()
        if isinstance(v, (str, re.Pattern)):
            v = [v]
        if isinstance(v, (Mapping, bytes)) or not isinstance(v, Iterable):
            logger.warning(f"Dropping ignore_list {v!r}: not a list of patterns")
            return ()

        patterns = []
        for entry in v:
            if isinstance(entry, re.Pattern) and isinstance(entry.pattern, bytes):
                # Creation stacks are text; a bytes pattern cannot search them
                logger.warning(f"Dropping ignore_list entry {entry!r}: bytes pattern")
            elif isinstance(entry, re.Pattern):
                patterns.append(entry)
            elif isinstance(entry, str):
                try:
                    patterns.append(re.compile(entry))
                except re.error as e:
                    logger.warning(f"Dropping ignore_list entry {entry!r}: {e}")
            else:
                logger.warning(f"Dropping ignore_list entry {entry!r}: not a pattern")
        return tuple(patterns)


_FIELD_NAMES = {
    **{name: name for name in SupervisionConfig.model_fields},
    **{
        field.alias: name
        for name, field in SupervisionConfig.model_fields.items()
        if field.alias
    },
}


def _normalize_keys(options: Mapping[str, Any], source: str) -> Dict[str, Any]:
    normalized = {}
    for key, value in options.items():
        name = _FIELD_NAMES.get(key)
        if name is None:
            logger.warning(f"Ignoring unknown supervision option {key!r} from {source}")
            continue
        normalized[name] = value
    return normalized


def load_options_file(path: Optional[str]) -> Dict[str, Any]:
    """Read supervision option overrides from a YAML file"""
    if not path or not os.path.exists(path):
        return {}

    try:
        with open(path, "r") as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading supervision options from {path}: {e}")
        return {}

    if not isinstance(loaded, dict):
        logger.warning(f"Supervision options file {path} is not a mapping, ignoring it")
        return {}
    return loaded


def resolve_config(
    options: Optional[Union[Mapping[str, Any], SupervisionConfig]] = None,
    **overrides
) -> SupervisionConfig:
    """
    Merge caller options over the documented defaults.

    Layers, lowest first: defaults, the OPTIONS_FILE yaml, ``options``, keyword
    overrides. Every supplied field replaces the lower layer wholesale, so a
    custom ``ignore_list`` replaces the default list instead of extending it.
    """
    if isinstance(options, SupervisionConfig) and not overrides:
        return options

    merged = _normalize_keys(load_options_file(settings.OPTIONS_FILE), "options file")
    if isinstance(options, SupervisionConfig):
        merged.update(options.model_dump())
    elif options:
        merged.update(_normalize_keys(options, "options"))
    merged.update(_normalize_keys(overrides, "keyword overrides"))

    return SupervisionConfig.model_validate(merged)


# Singletons
settings = Settings()
