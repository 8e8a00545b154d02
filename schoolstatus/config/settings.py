"""
Engine configuration loaded from YAML.

Usage:
    from schoolstatus.config.settings import load_config

    config = load_config()            # SCHOOLSTATUS_CONFIG or config/status.yaml
    config = load_config("my.yaml")

Validation happens here, once, at startup. Anything malformed raises
ConfigError so a bad deployment fails before serving requests.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from bs4 import BeautifulSoup
from dotenv import load_dotenv

from ..ingest.coordinator import DispatchMode
from ..ingest.sources import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_TIMEOUT_SECONDS,
    Entity,
    ExtractionStrategy,
    SourceDescriptor,
    Verdict,
)
from ..resolution.cache import DEFAULT_TTL_SECONDS
from ..resolution.models import CanonicalStatus
from ..resolution.policy import POLICIES
from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SCHOOLSTATUS_CONFIG"
DEFAULT_CONFIG_PATH = "config/status.yaml"

# Repo root: schoolstatus/config/settings.py -> repo root
_REPO_ROOT = Path(__file__).resolve().parent.parent.parent

# Safe defaults allowed when every source fails
ALL_FAILED_STATUSES = (CanonicalStatus.UNKNOWN, CanonicalStatus.OPEN, CanonicalStatus.NO_REPORT)


@dataclass(frozen=True)
class EngineConfig:
    entity: Entity
    sources: Tuple[SourceDescriptor, ...]
    dispatch_mode: DispatchMode = DispatchMode.PARALLEL
    resolution_strategy: str = "severity_override"
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    all_failed_status: CanonicalStatus = CanonicalStatus.UNKNOWN
    no_mention_verdict: Verdict = Verdict.OPEN
    retry: Dict[str, Any] = field(default_factory=dict)


def find_config_path(path: Optional[str] = None) -> Path:
    """
    Resolve the config file: explicit path, then $SCHOOLSTATUS_CONFIG, then
    config/status.yaml relative to the working directory or the repo root.
    """
    load_dotenv()

    candidates = []
    if path:
        candidates.append(Path(path))
    elif os.environ.get(CONFIG_ENV_VAR):
        candidates.append(Path(os.environ[CONFIG_ENV_VAR]))
    else:
        candidates.append(Path(DEFAULT_CONFIG_PATH))
        candidates.append(_REPO_ROOT / DEFAULT_CONFIG_PATH)

    for candidate in candidates:
        if candidate.exists():
            return candidate

    raise ConfigError(f"Config file not found (tried: {', '.join(str(c) for c in candidates)})")


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load and validate the engine configuration."""
    config_path = find_config_path(path)
    try:
        with open(config_path, 'r') as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    config = parse_config(raw)
    logger.info(f"Loaded {len(config.sources)} sources from {config_path}")
    return config


def _enum(enum_cls, value, key: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [m.value for m in enum_cls]
        raise ConfigError(f"Invalid {key} '{value}'. Allowed: {allowed}") from None


def _positive(value, key: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}") from None
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    return number


def _window(value, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{key} must be a whole number of characters >= 1, got {value!r}")
    return value


def _mapping(value, key: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping, got {type(value).__name__}")
    return value


def _check_selector(selector: str, source_name: str):
    try:
        BeautifulSoup("", "lxml").select(selector)
    except Exception as e:
        raise ConfigError(f"Source '{source_name}': invalid selector {selector!r}: {e}") from e


def parse_source(raw: Dict[str, Any], default_timeout: float, default_window: int) -> SourceDescriptor:
    """Build one SourceDescriptor from its YAML mapping."""
    if not isinstance(raw, dict):
        raise ConfigError(f"Every source must be a mapping, got {raw!r}")
    name = raw.get('name')
    url = raw.get('url')
    if not name or not url:
        raise ConfigError(f"Every source needs a name and url: {raw}")

    strategy = _enum(ExtractionStrategy, raw.get('strategy', 'windowed'), f"strategy for '{name}'")
    selector = raw.get('selector')
    if strategy is ExtractionStrategy.SELECTOR:
        if not selector:
            raise ConfigError(f"Source '{name}' uses the selector strategy but has no selector")
        _check_selector(selector, name)

    window = raw.get('context_window')
    if window is not None:
        window = _window(window, f"context_window for '{name}'")
    elif strategy is ExtractionStrategy.WINDOWED:
        window = default_window

    try:
        priority = int(raw.get('priority', 100))
    except (TypeError, ValueError):
        raise ConfigError(f"priority for '{name}' must be an integer") from None

    headers = _mapping(raw.get('headers'), f"headers for '{name}'")

    return SourceDescriptor(
        name=name,
        url=url,
        strategy=strategy,
        priority=priority,
        selector=selector,
        context_window=window,
        require_mention=bool(raw.get('require_mention', True)),
        timeout_seconds=_positive(raw.get('timeout_seconds', default_timeout), f"timeout_seconds for '{name}'"),
        headers={str(k): str(v) for k, v in headers.items()},
    )


def parse_config(raw: Dict[str, Any]) -> EngineConfig:
    """Validate a parsed YAML document into an EngineConfig."""
    raw = _mapping(raw, "Config root")
    entity_raw = _mapping(raw.get('entity'), "entity")
    if not entity_raw.get('name'):
        raise ConfigError("entity.name is required")
    entity = Entity(name=entity_raw['name'], aliases=tuple(entity_raw.get('aliases') or ()))

    engine = _mapping(raw.get('engine'), "engine")
    default_timeout = _positive(engine.get('default_timeout_seconds', DEFAULT_TIMEOUT_SECONDS),
                                "engine.default_timeout_seconds")
    default_window = _window(engine.get('context_window', DEFAULT_CONTEXT_WINDOW), "engine.context_window")

    sources_raw: List[Dict[str, Any]] = raw.get('sources') or []
    if not isinstance(sources_raw, list):
        raise ConfigError("sources must be a list")
    if not sources_raw:
        raise ConfigError("At least one source must be configured")
    sources = tuple(parse_source(s, default_timeout, default_window) for s in sources_raw)

    names = [s.name for s in sources]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate source names: {duplicates}")

    dispatch_mode = _enum(DispatchMode, engine.get('dispatch_mode', 'parallel'), "engine.dispatch_mode")

    strategy = engine.get('resolution_strategy', 'severity_override')
    if strategy not in POLICIES:
        raise ConfigError(f"Invalid engine.resolution_strategy '{strategy}'. Allowed: {sorted(POLICIES)}")
    if strategy == 'priority_fallback' and dispatch_mode is not DispatchMode.SEQUENTIAL:
        raise ConfigError("resolution_strategy 'priority_fallback' requires dispatch_mode 'sequential'")

    all_failed = _enum(CanonicalStatus, engine.get('all_failed_status', 'UNKNOWN'), "engine.all_failed_status")
    if all_failed not in ALL_FAILED_STATUSES:
        raise ConfigError(f"engine.all_failed_status must be one of {[s.value for s in ALL_FAILED_STATUSES]}")

    no_mention = _enum(Verdict, engine.get('no_mention_verdict', 'OPEN'), "engine.no_mention_verdict")
    if not no_mention.is_decisive:
        raise ConfigError("engine.no_mention_verdict cannot be ERROR")

    ttl = engine.get('cache_ttl_seconds', DEFAULT_TTL_SECONDS)
    try:
        ttl = float(ttl)
    except (TypeError, ValueError):
        raise ConfigError(f"engine.cache_ttl_seconds must be a number, got {ttl!r}") from None
    if ttl < 0:
        raise ConfigError("engine.cache_ttl_seconds cannot be negative")

    return EngineConfig(
        entity=entity,
        sources=sources,
        dispatch_mode=dispatch_mode,
        resolution_strategy=strategy,
        cache_ttl_seconds=ttl,
        all_failed_status=all_failed,
        no_mention_verdict=no_mention,
        retry=dict(_mapping(raw.get('retry'), "retry")),
    )
