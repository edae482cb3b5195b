"""Explicit configuration for the categorization core.

Core functions take their knobs as arguments; :class:`CoreConfig` bundles them
so entrypoints resolve settings once instead of reading a shared key-value
store ad hoc. Resolution order for :func:`load_config` (highest wins):

1. environment variables (``EXPENSE_TRACKER_*``; the CLI loads ``.env`` first),
2. settings persisted in the ledger (``et_settings``),
3. built-in defaults.

Environment variables
---------------------
``EXPENSE_TRACKER_IGNORED_ACCOUNTS``
    Comma-separated own-account identifiers. Replaces the persisted list.
``EXPENSE_TRACKER_SUGGESTION_LIMIT``
    Positive integer; default number of rule suggestions.
``EXPENSE_TRACKER_NORMALIZE_WORKERS``
    Positive integer; row-normalization thread count (capped at 32).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .models import INCOME_CATEGORY_ID, INTERNAL_CATEGORY_ID

if TYPE_CHECKING:  # pragma: no cover
    from .persistence import LedgerStore

_ENV_PREFIX = "EXPENSE_TRACKER_"
_MAX_WORKERS = 32


@dataclass(frozen=True, slots=True)
class CoreConfig:
    ignored_accounts: tuple[str, ...] = ()
    income_category_id: str = INCOME_CATEGORY_ID
    internal_category_id: str = INTERNAL_CATEGORY_ID
    normalize_workers: int = 1
    suggestion_limit: int = 10

    def __post_init__(self) -> None:
        if self.normalize_workers < 1:
            raise ValueError("normalize_workers must be a positive integer")
        if self.suggestion_limit < 1:
            raise ValueError("suggestion_limit must be a positive integer")


def _parse_positive_int(raw: str, *, name: str) -> int:
    try:
        n = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if n < 1:
        raise ValueError(f"{name} must be a positive integer (got {n})")
    return n


def split_accounts(raw: str) -> tuple[str, ...]:
    return tuple(dict.fromkeys(p.strip() for p in raw.split(",") if p.strip()))


def config_from_env(base: CoreConfig, env: Mapping[str, str] | None = None) -> CoreConfig:
    """Overlay ``EXPENSE_TRACKER_*`` variables onto ``base``."""

    env = os.environ if env is None else env
    cfg = base

    accounts = env.get(_ENV_PREFIX + "IGNORED_ACCOUNTS")
    if accounts is not None:
        cfg = replace(cfg, ignored_accounts=split_accounts(accounts))

    limit = env.get(_ENV_PREFIX + "SUGGESTION_LIMIT")
    if limit:
        cfg = replace(
            cfg, suggestion_limit=_parse_positive_int(limit, name=_ENV_PREFIX + "SUGGESTION_LIMIT")
        )

    workers = env.get(_ENV_PREFIX + "NORMALIZE_WORKERS")
    if workers:
        n = _parse_positive_int(workers, name=_ENV_PREFIX + "NORMALIZE_WORKERS")
        cfg = replace(cfg, normalize_workers=min(n, _MAX_WORKERS))

    return cfg


def config_from_store(store: LedgerStore, base: CoreConfig | None = None) -> CoreConfig:
    """Read persisted settings into a config."""

    cfg = base or CoreConfig()
    return replace(cfg, ignored_accounts=tuple(store.get_ignored_accounts()))


def load_config(
    store: LedgerStore | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> CoreConfig:
    cfg = CoreConfig()
    if store is not None:
        cfg = config_from_store(store, cfg)
    return config_from_env(cfg, env)


__all__ = [
    "CoreConfig",
    "config_from_env",
    "config_from_store",
    "load_config",
    "split_accounts",
]
