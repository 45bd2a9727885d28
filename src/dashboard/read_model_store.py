"""Okuma modeli deposu - backend koleksiyonlarının son bilinen anlık görüntüsü.

- refresh_all: her kaynağı eşzamanlı çeker, her sonuç kendi yuvasına
  bağımsız uygulanır; başarısız kaynak eski değerini korur.
- replace_all: tek parça birleşik sonucu hep-ya-hiç uygular.
- Türetilmiş değerler (düşük stok sayısı vb.) saklanmaz, her okumada
  mevcut koleksiyonlardan hesaplanır.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from src.dashboard.errors import DashboardError, FetchFailure, MalformedPayload
from src.models.supply_chain import (
    InventoryItem,
    Metric,
    OrderStatus,
    PurchaseOrder,
    RestockPlan,
    SLAViolation,
    parse_records,
)

logger = logging.getLogger(__name__)

# Birleşik sonuç alanı -> (depo yuvası, ayrıştırıcı)
COMBINED_FIELDS: dict[str, tuple[str, Callable[[dict], Any]]] = {
    "inventory_data": ("inventory", InventoryItem.from_dict),
    "purchase_orders": ("purchase_orders", PurchaseOrder.from_dict),
    "restock_plan": ("restock_plan", RestockPlan.from_dict),
    "sla_violations": ("sla_violations", SLAViolation.from_dict),
    "metrics": ("metrics", Metric.from_dict),
}


@dataclass(frozen=True)
class StoreSnapshot:
    inventory: tuple[InventoryItem, ...] = ()
    purchase_orders: tuple[PurchaseOrder, ...] = ()
    sla_violations: tuple[SLAViolation, ...] = ()
    restock_plan: tuple[RestockPlan, ...] = ()
    metrics: tuple[Metric, ...] = ()


@dataclass
class ReadModelStore:
    """Dashboard oturumuna ait okuma modelleri."""

    inventory: list[InventoryItem] = field(default_factory=list)
    purchase_orders: list[PurchaseOrder] = field(default_factory=list)
    sla_violations: list[SLAViolation] = field(default_factory=list)
    restock_plan: list[RestockPlan] = field(default_factory=list)
    metrics: list[Metric] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    # --- Çekme (pull) ---

    async def refresh_all(self, client: Any) -> list[str]:
        """Yapılandırılmış tüm kaynakları eşzamanlı yeniler.

        İstekler birlikte gönderilir; her biri tamamlandığı anda kendi
        yuvasını günceller. Dönüş değeri bu çağrıda oluşan uyarılardır.
        """
        jobs: list[Awaitable[Optional[str]]] = [
            self._refresh_one("inventory", client.fetch_inventory, InventoryItem.from_dict),
            self._refresh_one(
                "purchase_orders", client.fetch_purchase_orders, PurchaseOrder.from_dict
            ),
            self._refresh_one(
                "sla_violations", client.fetch_sla_violations, SLAViolation.from_dict
            ),
        ]
        if getattr(client.config, "metrics_path", None):
            jobs.append(self._refresh_one("metrics", client.fetch_metrics, Metric.from_dict))

        results = await asyncio.gather(*jobs)
        new_warnings = [w for w in results if w]
        logger.info(
            "Okuma modelleri yenilendi: %d/%d başarılı", len(results) - len(new_warnings), len(results)
        )
        return new_warnings

    async def _refresh_one(
        self,
        slot: str,
        fetch: Callable[[], Awaitable[Any]],
        parser: Callable[[dict], Any],
    ) -> Optional[str]:
        try:
            raw = await fetch()
            try:
                records = parse_records(raw, parser, slot)
            except (ValueError, TypeError) as e:
                raise FetchFailure(slot, f"bozuk kayıt: {e}") from e
        except DashboardError as e:
            logger.warning("Kaynak yenilenemedi, önceki görüntü korunuyor: %s", e)
            return self.add_warning(str(e))

        setattr(self, slot, records)
        logger.debug("%s güncellendi (%d kayıt)", slot, len(records))
        return None

    # --- İtme (push) ---

    def replace_all(self, payload: Any) -> bool:
        """Birleşik sonucu atomik uygular. Reddedilirse depo değişmez."""
        try:
            parsed = self._parse_combined(payload)
        except MalformedPayload as e:
            logger.warning("Birleşik sonuç reddedildi: %s", e)
            self.add_warning(f"Birleşik sonuç reddedildi: {e}")
            return False

        # Ayrıştırma bitmeden hiçbir yuvaya dokunulmaz
        for slot, records in parsed.items():
            setattr(self, slot, records)
        logger.info("Birleşik sonuç uygulandı (%d envanter kalemi)", len(self.inventory))
        return True

    def _parse_combined(self, payload: Any) -> dict[str, list]:
        if not isinstance(payload, dict):
            raise MalformedPayload(f"nesne bekleniyordu, gelen: {type(payload).__name__}")
        missing = [name for name in COMBINED_FIELDS if name not in payload]
        if missing:
            raise MalformedPayload(f"eksik alanlar: {', '.join(missing)}")

        parsed: dict[str, list] = {}
        for name, (slot, parser) in COMBINED_FIELDS.items():
            try:
                parsed[slot] = parse_records(payload[name], parser, name)
            except (ValueError, TypeError) as e:
                raise MalformedPayload(str(e)) from e
        return parsed

    # --- Uyarılar ---

    def add_warning(self, message: str) -> str:
        self.warnings.append(message)
        return message

    def clear_warnings(self) -> None:
        self.warnings = []

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            inventory=tuple(self.inventory),
            purchase_orders=tuple(self.purchase_orders),
            sla_violations=tuple(self.sla_violations),
            restock_plan=tuple(self.restock_plan),
            metrics=tuple(self.metrics),
        )

    # --- Türetilmiş değerler ---

    @property
    def low_stock_items(self) -> list[InventoryItem]:
        return [item for item in self.inventory if item.is_low_stock]

    @property
    def low_stock_count(self) -> int:
        return len(self.low_stock_items)

    @property
    def sla_violation_count(self) -> int:
        return len(self.sla_violations)

    @property
    def total_stock(self) -> int:
        return sum(item.stock_level for item in self.inventory)

    @property
    def order_count(self) -> int:
        return len(self.purchase_orders)

    @property
    def open_order_count(self) -> int:
        return sum(1 for o in self.purchase_orders if o.known_status is OrderStatus.PENDING)

    def item_name_for(self, order: PurchaseOrder) -> str:
        """Siparişin ürün adı: envanterden, yoksa sipariş üzerindeki ad, o da yoksa item_id."""
        for item in self.inventory:
            if item.item_id == order.item_id:
                return item.name
        return order.item_name or order.item_id
