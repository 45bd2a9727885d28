"""Konsol görünümü - depo, log tamponu ve çalıştırma durumundan rich çıktıları.

İş mantığı yok; yalnızca mevcut durumun sunumu.
"""

from __future__ import annotations

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src.dashboard.log_buffer import LogBuffer
from src.dashboard.read_model_store import ReadModelStore
from src.models.supply_chain import OrderStatus, PurchaseOrder, RunStatus

EMPTY_LOG_PLACEHOLDER = 'No logs yet. Click "Run System" to start.'

STATUS_BADGES = {
    OrderStatus.PENDING: ("Pending", "black on yellow"),
    OrderStatus.FULFILLED: ("Fulfilled", "black on green"),
    OrderStatus.CANCELLED: ("Cancelled", "white on red"),
}


def _cell(value) -> Text:
    # Backend verisi rich markup olarak yorumlanmasın
    return Text(str(value))


def status_badge(order: PurchaseOrder) -> Text:
    """Bilinen durumlar renkli rozet, bilinmeyenler olduğu gibi."""
    known = order.known_status
    if known is None:
        return _cell(order.status)
    label, style = STATUS_BADGES[known]
    return Text(f" {label} ", style=style)


def render_header(session) -> Text:
    if session.status is RunStatus.RUNNING:
        button = Text("[ Running... ]", style="bold yellow")
    else:
        button = Text("[ Run Supply Chain System ]", style="bold blue")
    header = Text.assemble(
        ("Supply Chain Management", "bold"),
        "  ",
        button,
        f"  durum: {session.status.value}",
    )
    if session.reconciling:
        header.append("  (veriler yenileniyor)", style="dim")
    if session.last_error:
        header.append(f"\n{session.last_error}", style="red")
    return header


def render_logs(log_buffer: LogBuffer) -> Panel:
    if log_buffer.is_empty:
        body = Text(EMPTY_LOG_PLACEHOLDER, style="dim")
    else:
        body = Text()
        for entry in log_buffer:
            body.append(f"[{entry.timestamp}] ", style="dim")
            body.append(entry.message + "\n")
        body.rstrip()
    return Panel(body, title="Activity Logs")


def render_inventory(store: ReadModelStore) -> Table:
    table = Table(title="Inventory", show_header=True, header_style="bold")
    for column in ("Item", "Stock", "Threshold", "Supplier", "Updated"):
        table.add_column(column)
    for item in store.inventory:
        name = Text(item.name)
        if item.is_low_stock:
            name.append(" Low Stock", style="bold white on red")
        table.add_row(
            name,
            _cell(item.stock_level),
            _cell(item.reorder_threshold),
            _cell(item.supplier),
            _cell(item.last_updated),
            style="red" if item.is_low_stock else None,
        )
    return table


def render_purchase_orders(store: ReadModelStore) -> Table:
    table = Table(title="Purchase Orders", show_header=True, header_style="bold")
    for column in ("Order ID", "Item", "Qty", "Supplier", "Date", "Status"):
        table.add_column(column)
    for order in store.purchase_orders:
        table.add_row(
            _cell(order.order_id),
            _cell(store.item_name_for(order)),
            _cell(order.quantity),
            _cell(order.supplier),
            _cell(order.order_date),
            status_badge(order),
        )
    return table


def render_restock_plan(store: ReadModelStore) -> Table:
    table = Table(title="Restock Plan", show_header=True, header_style="bold")
    for column in ("Order", "Item", "Supplier", "Logistics", "ETA", "Method"):
        table.add_column(column)
    for plan in store.restock_plan:
        table.add_row(
            *(_cell(v) for v in (
                plan.order_id,
                plan.item_id,
                plan.supplier,
                plan.logistics_partner,
                plan.estimated_arrival,
                plan.delivery_method,
            )),
        )
    return table


def render_sla_violations(store: ReadModelStore) -> Table:
    table = Table(title="SLA Violations", show_header=True, header_style="bold red")
    for column in ("Order", "Reported On", "Supplier", "Reason"):
        table.add_column(column)
    for violation in store.sla_violations:
        table.add_row(
            _cell(violation.order_id),
            _cell(violation.reported_on),
            _cell(violation.supplier),
            _cell(violation.reason),
        )
    return table


def render_metrics(store: ReadModelStore) -> Table:
    table = Table(title="Metrics", show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Description")
    for metric in store.metrics:
        table.add_row(
            _cell(metric.name),
            _cell(f"{metric.value:g} {metric.unit}".strip()),
            _cell(metric.description),
        )
    return table


def render_summary(store: ReadModelStore) -> Text:
    summary = Text(
        f"Düşük stok: {store.low_stock_count}  |  Toplam stok: {store.total_stock}  |  "
        f"Açık sipariş: {store.open_order_count}/{store.order_count}  |  "
        f"SLA ihlali: {store.sla_violation_count}"
    )
    for warning in store.warnings:
        summary.append(f"\n! {warning}", style="yellow")
    return summary


def render_dashboard(session) -> Group:
    """Tüm dashboard'u tek bir rich Group olarak döndürür."""
    store = session.store
    parts = [
        render_header(session),
        render_logs(session.log_buffer),
        render_inventory(store),
        render_purchase_orders(store),
    ]
    if store.restock_plan:
        parts.append(render_restock_plan(store))
    # SLA tablosu yalnızca ihlal varsa gösterilir
    if store.sla_violations:
        parts.append(render_sla_violations(store))
    if store.metrics:
        parts.append(render_metrics(store))
    parts.append(render_summary(store))
    return Group(*parts)
