"""Uzlaştırma stratejileri - çalıştırma bittikten sonra okuma modellerini tazeler.

İki strateji aynı arayüzü paylaşır ve yapılandırmayla seçilir:
- pull: her kaynak için ayrı GET (ReadModelStore.refresh_all)
- push: çalıştırmayı başlatan /run isteğinin tek parça sonucu (replace_all)
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from src.dashboard.config import DashboardConfig, ReconcileStrategy
from src.dashboard.errors import DashboardError
from src.dashboard.read_model_store import ReadModelStore

logger = logging.getLogger(__name__)


class Reconciler(ABC):
    """Uzlaştırma stratejisi temel sınıfı."""

    name: str = ""

    def begin(self, client: Any) -> None:
        """Çalıştırma başlarken çağrılır."""

    def cancel(self) -> None:
        """Bekleyen iş varsa bırakır."""

    @abstractmethod
    async def reconcile(self, store: ReadModelStore, client: Any) -> bool:
        """Depoyu backend durumuyla eşitler. Tam başarıda True döner."""
        ...


class PullReconciler(Reconciler):
    name = ReconcileStrategy.PULL.value

    async def reconcile(self, store: ReadModelStore, client: Any) -> bool:
        warnings = await store.refresh_all(client)
        return not warnings


class PushReconciler(Reconciler):
    """/run isteği akışla birlikte başlar; sonucu uzlaştırmada uygulanır."""

    name = ReconcileStrategy.PUSH.value

    def __init__(self) -> None:
        self._pending: Optional[asyncio.Task] = None

    def begin(self, client: Any) -> None:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(client.fetch_run_result())

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def reconcile(self, store: ReadModelStore, client: Any) -> bool:
        task, self._pending = self._pending, None
        if task is None:
            # begin çağrılmadıysa sonucu şimdi iste
            task = asyncio.get_running_loop().create_task(client.fetch_run_result())
        try:
            payload = await task
        except DashboardError as e:
            logger.warning("Birleşik sonuç alınamadı, önceki görüntü korunuyor: %s", e)
            store.add_warning(str(e))
            return False
        return store.replace_all(payload)


def build_reconciler(config: DashboardConfig) -> Reconciler:
    """Yapılandırmadaki stratejiye göre uzlaştırıcı oluşturur."""
    strategy = ReconcileStrategy(config.reconcile_strategy)
    if strategy is ReconcileStrategy.PUSH:
        return PushReconciler()
    return PullReconciler()
