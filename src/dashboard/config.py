"""Dashboard yapılandırması.

Öncelik sırası: varsayılanlar < ortam değişkenleri < YAML dosyası.
Ortam değişkenleri giriş scriptinde env_loader ile .env'den yüklenir.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "SUPPLY_DASHBOARD_"


class ReconcileStrategy(str, Enum):
    PULL = "pull"
    PUSH = "push"


@dataclass(frozen=True)
class DashboardConfig:
    base_url: str = "http://localhost:8000"
    inventory_path: str = "/inventory"
    purchase_orders_path: str = "/purchase-orders"
    sla_violations_path: str = "/sla-violations"
    metrics_path: Optional[str] = None
    run_path: str = "/run"
    stream_path: str = "/run-full-stream"
    end_event: str = "end"
    reconcile_strategy: ReconcileStrategy = ReconcileStrategy.PULL
    request_timeout: float = 30.0
    fetch_retries: int = 0
    retry_backoff: float = 0.5
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        # YAML/env'den string gelebilir
        try:
            strategy = ReconcileStrategy(self.reconcile_strategy)
        except ValueError:
            raise ValueError(
                f"Geçersiz uzlaştırma stratejisi: {self.reconcile_strategy!r} (pull|push)"
            ) from None
        object.__setattr__(self, "reconcile_strategy", strategy)
        if self.fetch_retries < 0:
            raise ValueError("fetch_retries negatif olamaz")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout pozitif olmalı")


# env değişkeni -> (alan adı, dönüştürücü)
_ENV_FIELDS = {
    "BASE_URL": ("base_url", str),
    "METRICS_PATH": ("metrics_path", str),
    "END_EVENT": ("end_event", str),
    "RECONCILE": ("reconcile_strategy", str),
    "TIMEOUT": ("request_timeout", float),
    "FETCH_RETRIES": ("fetch_retries", int),
    "RETRY_BACKOFF": ("retry_backoff", float),
    "VERIFY_SSL": ("verify_ssl", lambda v: v.strip().lower() not in ("0", "false", "no", "off")),
}


def _from_env(environ: dict) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for suffix, (name, convert) in _ENV_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        try:
            values[name] = convert(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX + suffix} değeri geçersiz: {raw!r}") from None
    return values


def _from_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Yapılandırma dosyası bir eşleme olmalı: {path}")
    known = {f.name for f in fields(DashboardConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Bilinmeyen yapılandırma anahtarları: {', '.join(unknown)}")
    return data


def load_config(path: Optional[str] = None, environ: Optional[dict] = None) -> DashboardConfig:
    """Yapılandırmayı ortamdan ve (varsa) YAML dosyasından oluşturur."""
    environ = os.environ if environ is None else environ
    config = replace(DashboardConfig(), **_from_env(environ))

    config_path = path or environ.get(ENV_PREFIX + "CONFIG")
    if config_path:
        config = replace(config, **_from_yaml(Path(config_path)))
        logger.info("Yapılandırma dosyası yüklendi: %s", config_path)

    logger.debug(
        "Yapılandırma: base_url=%s strateji=%s",
        config.base_url,
        config.reconcile_strategy.value,
    )
    return config
