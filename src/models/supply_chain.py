"""Tedarik zinciri dashboard veri modelleri."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"
    SETTLED = "settled"


class OrderStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


def _require(data: Any, key: str, record: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{record} kaydı nesne değil: {data!r}")
    if key not in data:
        raise ValueError(f"{record} kaydında '{key}' alanı eksik")
    return data[key]


def _as_int(value: Any, key: str, record: str, minimum: int = 0) -> int:
    # bool da int alt sınıfı, kabul etmiyoruz
    if isinstance(value, bool) or not isinstance(value, int):
        if not (isinstance(value, float) and value.is_integer()):
            raise ValueError(f"{record}.{key} tam sayı olmalı: {value!r}")
    if value < minimum:
        raise ValueError(f"{record}.{key} en az {minimum} olmalı: {value!r}")
    return int(value)


@dataclass(frozen=True)
class InventoryItem:
    item_id: str
    name: str
    stock_level: int
    reorder_threshold: int
    supplier: str
    last_updated: str

    @property
    def is_low_stock(self) -> bool:
        """Stok eşiğin altındaysa True. Saklanmaz, her okumada hesaplanır."""
        return self.stock_level < self.reorder_threshold

    @classmethod
    def from_dict(cls, data: dict) -> InventoryItem:
        rec = "InventoryItem"
        return cls(
            item_id=str(_require(data, "item_id", rec)),
            name=str(_require(data, "name", rec)),
            stock_level=_as_int(_require(data, "stock_level", rec), "stock_level", rec),
            reorder_threshold=_as_int(
                _require(data, "reorder_threshold", rec), "reorder_threshold", rec
            ),
            supplier=str(data.get("supplier", "")),
            last_updated=str(data.get("last_updated", "")),
        )


@dataclass(frozen=True)
class PurchaseOrder:
    order_id: str
    item_id: str
    quantity: int
    supplier: str
    order_date: str
    status: str
    item_name: Optional[str] = None

    @property
    def known_status(self) -> Optional[OrderStatus]:
        """Bilinen bir durumsa enum değeri, değilse None (açık enum)."""
        try:
            return OrderStatus(self.status)
        except ValueError:
            return None

    @classmethod
    def from_dict(cls, data: dict) -> PurchaseOrder:
        rec = "PurchaseOrder"
        item_name = data.get("item_name") if isinstance(data, dict) else None
        return cls(
            order_id=str(_require(data, "order_id", rec)),
            item_id=str(_require(data, "item_id", rec)),
            quantity=_as_int(_require(data, "quantity", rec), "quantity", rec, minimum=1),
            supplier=str(data.get("supplier", "")),
            order_date=str(data.get("order_date", "")),
            status=str(data.get("status", "")),
            item_name=str(item_name) if item_name is not None else None,
        )


@dataclass(frozen=True)
class RestockPlan:
    order_id: str
    item_id: str
    supplier: str
    logistics_partner: str
    estimated_arrival: str
    delivery_method: str

    @classmethod
    def from_dict(cls, data: dict) -> RestockPlan:
        rec = "RestockPlan"
        return cls(
            order_id=str(_require(data, "order_id", rec)),
            item_id=str(_require(data, "item_id", rec)),
            supplier=str(data.get("supplier", "")),
            logistics_partner=str(data.get("logistics_partner", "")),
            estimated_arrival=str(data.get("estimated_arrival", "")),
            delivery_method=str(data.get("delivery_method", "")),
        )


@dataclass(frozen=True)
class SLAViolation:
    order_id: str
    supplier: str
    reason: str
    reported_on: str

    @property
    def key(self) -> tuple[str, str]:
        # Aynı sipariş birden fazla ihlal üretebilir
        return (self.order_id, self.reported_on)

    @classmethod
    def from_dict(cls, data: dict) -> SLAViolation:
        rec = "SLAViolation"
        return cls(
            order_id=str(_require(data, "order_id", rec)),
            supplier=str(data.get("supplier", "")),
            reason=str(data.get("reason", "")),
            reported_on=str(_require(data, "reported_on", rec)),
        )


@dataclass(frozen=True)
class Metric:
    name: str
    value: float
    unit: str
    description: str

    @classmethod
    def from_dict(cls, data: dict) -> Metric:
        rec = "Metric"
        value = _require(data, "value", rec)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{rec}.value sayı olmalı: {value!r}")
        return cls(
            name=str(_require(data, "name", rec)),
            value=value,
            unit=str(data.get("unit", "")),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class LogEntry:
    message: str
    timestamp: str


def parse_records(raw: Any, parser: Callable[[dict], Any], resource: str) -> list:
    """Bir JSON dizisini model listesine çevirir. Dizi değilse ValueError."""
    if not isinstance(raw, list):
        raise ValueError(f"{resource} dizi olmalı, gelen: {type(raw).__name__}")
    return [parser(item) for item in raw]
