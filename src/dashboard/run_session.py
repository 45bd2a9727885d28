"""Run Session - tek bir backend çalıştırmasının yaşam döngüsü.

Durumlar: IDLE -> RUNNING -> SETTLED | ERROR -> RUNNING (sonraki start)

- start() RUNNING iken hiçbir şey yapmaz; ikinci bir bağlantı açılamaz.
- Varsayılan olaylar geliş sırasıyla LogBuffer'a eklenir.
- Bitiş olayı -> SETTLED, akış hatası ya da bitişsiz kapanma -> ERROR.
- Her iki sonlanmada da bağlantı kapatılıp durum yazıldıktan sonra
  uzlaştırma tam olarak bir kez çalışır.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from datetime import datetime
from typing import Any, Callable, Optional

from src.dashboard.backend_client import DEFAULT_EVENT, BackendClient
from src.dashboard.config import DashboardConfig
from src.dashboard.errors import StreamTransportError
from src.dashboard.log_buffer import LogBuffer
from src.dashboard.read_model_store import ReadModelStore
from src.dashboard.reconcile import Reconciler, build_reconciler
from src.models.supply_chain import LogEntry, RunStatus

logger = logging.getLogger(__name__)

Listener = Callable[["RunSession"], None]


def _local_time() -> str:
    return datetime.now().strftime("%H:%M:%S")


class RunSession:
    """Çalıştırma durum makinesi. Tek doğruluk kaynağı `status` alanıdır."""

    def __init__(
        self,
        config: DashboardConfig,
        store: ReadModelStore,
        log_buffer: LogBuffer,
        client: Optional[Any] = None,
        reconciler: Optional[Reconciler] = None,
        clock: Optional[Callable[[], str]] = None,
    ):
        self.config = config
        self.store = store
        self.log_buffer = log_buffer

        # Backend istemcisi ve uzlaştırıcı - dependency injection destekli
        self._owns_client = client is None
        self.client = client or BackendClient(config)
        self.reconciler = reconciler or build_reconciler(config)
        self._clock = clock or _local_time

        self.status = RunStatus.IDLE
        self.run_seq = 0
        self.last_error: Optional[str] = None
        self.reconciling = False
        self._task: Optional[asyncio.Task] = None
        self._listeners: list[Listener] = []

    @property
    def is_running(self) -> bool:
        return self.status is RunStatus.RUNNING

    def add_listener(self, listener: Listener) -> None:
        """Durum değişimi ve her yeni log satırında çağrılır."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # --- Başlatma ---

    def start(self) -> Optional[asyncio.Task]:
        """Yeni bir çalıştırma başlatır. RUNNING iken no-op, None döner.

        Kontrol ve durum ataması arasında bekleme noktası yoktur; hızlı çift
        tıklama tek bağlantı açar. Çalışan bir asyncio döngüsü gerektirir.
        """
        if self.is_running:
            logger.debug("Çalıştırma zaten sürüyor (#%d), start yok sayıldı", self.run_seq)
            return None

        loop = asyncio.get_running_loop()

        # Önceki çalıştırmanın bekleyen uzlaştırması yeni çalıştırmayı ezemez
        if self._task is not None and not self._task.done():
            logger.info("Önceki çalıştırmanın (#%d) uzlaştırması iptal ediliyor", self.run_seq)
            self._task.cancel()

        self.run_seq += 1
        self.log_buffer.clear()
        self.last_error = None
        # İptal edilen uzlaştırma bayrağı kendisi indirmez
        self.reconciling = False
        self.status = RunStatus.RUNNING
        self.reconciler.begin(self.client)
        self._task = loop.create_task(self._run(self.run_seq))
        logger.info("Çalıştırma #%d başladı (uzlaştırma: %s)", self.run_seq, self.reconciler.name)
        self._notify()
        return self._task

    async def wait(self) -> None:
        """Geçerli çalıştırma (uzlaştırma dahil) bitene kadar bekler."""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def close(self) -> None:
        """Uygulama kapanışı: bekleyen işleri iptal eder, kendi istemcisini kapatır."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.wait({self._task})
        self.reconciler.cancel()
        if self._owns_client:
            await self.client.aclose()

    # --- Akış tüketimi ---

    async def _run(self, seq: int) -> None:
        settled = False
        error: Optional[str] = None
        try:
            async with aclosing(self.client.stream_run()) as events:
                async for event in events:
                    if event.event == self.config.end_event:
                        settled = True
                        break
                    if event.event == DEFAULT_EVENT:
                        self._on_message(event.data)
                    else:
                        logger.debug("Bilinmeyen olay yok sayıldı: %s", event.event)
            if not settled:
                error = "Olay akışı bitiş sinyali olmadan kapandı"
        except StreamTransportError as e:
            error = str(e)
        except asyncio.CancelledError:
            if seq == self.run_seq and self.is_running:
                self._finish(seq, RunStatus.ERROR, "Çalıştırma iptal edildi")
            raise

        # Bağlantı burada kapalı; uzlaştırma sonlanma işlendikten sonra başlar
        self._finish(seq, RunStatus.SETTLED if settled else RunStatus.ERROR, error)
        await self._reconcile(seq)

    def _on_message(self, data: str) -> None:
        self.log_buffer.append(LogEntry(message=data.strip(), timestamp=self._clock()))
        self._notify()

    def _finish(self, seq: int, status: RunStatus, error: Optional[str]) -> None:
        self.status = status
        self.last_error = error
        if error:
            logger.warning("Çalıştırma #%d hata ile bitti: %s", seq, error)
        else:
            logger.info("Çalıştırma #%d tamamlandı (%d log satırı)", seq, len(self.log_buffer))
        self._notify()

    async def _reconcile(self, seq: int) -> None:
        self.reconciling = True
        self._notify()
        try:
            ok = await self.reconciler.reconcile(self.store, self.client)
            logger.info("Çalıştırma #%d uzlaştırıldı (tam başarı: %s)", seq, ok)
        except Exception as e:
            logger.exception("Uzlaştırma hatası (#%d)", seq)
            self.store.add_warning(f"Uzlaştırma hatası: {e}")
        finally:
            # İptal edilen eski uzlaştırma yeni çalıştırmanın bayrağına dokunmaz
            if seq == self.run_seq:
                self.reconciling = False
        self._notify()

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener(self)
            except Exception as e:
                logger.warning("Dinleyici hatası: %s", e)
