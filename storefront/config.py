"""Runtime configuration for the composer and the upstream store."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ComposerConfig:
    page_limit: int = 12
    per_category_cap: int = 2
    auto_min_percent: float = 10.0
    fire_min_percent: float = 40.0
    search_cap: int = 50

    @classmethod
    def from_env(cls) -> "ComposerConfig":
        return cls(
            page_limit=int(os.environ.get("HOME_DISCOUNT_LIMIT", str(cls.page_limit))),
            per_category_cap=int(os.environ.get("HOME_DISCOUNT_PER_TYPE", str(cls.per_category_cap))),
            auto_min_percent=float(os.environ.get("HOME_DISCOUNT_AUTO_MIN_PERCENT", str(cls.auto_min_percent))),
            fire_min_percent=float(os.environ.get("HOME_DISCOUNT_FIRE_MIN_PERCENT", str(cls.fire_min_percent))),
            search_cap=int(os.environ.get("SEARCH_GENERATOR_CAP", str(cls.search_cap))),
        )


@dataclass(frozen=True)
class StoreConfig:
    base_url: str = ""
    service_key: str = ""
    timeout_s: float = 10.0
    bulk_fetch_limit: int = 10000

    @classmethod
    def from_env(cls) -> "StoreConfig":
        return cls(
            base_url=os.environ.get("SUPABASE_URL", cls.base_url).rstrip("/"),
            service_key=os.environ.get("SUPABASE_SERVICE_ROLE", cls.service_key),
            timeout_s=float(os.environ.get("STORE_TIMEOUT_S", str(cls.timeout_s))),
            bulk_fetch_limit=int(os.environ.get("STORE_BULK_FETCH_LIMIT", str(cls.bulk_fetch_limit))),
        )


def is_production() -> bool:
    """True when STOREFRONT_ENV=production (controls secure cookies)."""
    return os.environ.get("STOREFRONT_ENV", "").lower() == "production"
