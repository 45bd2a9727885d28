"""Backend istemcisi - okuma modeli GET'leri ve çalıştırma olay akışı (SSE).

Tüm ağ G/Ç'si burada; geri kalan çekirdek bu sınıfın arayüzüyle çalışır
ve testlerde sahte bir istemciyle değiştirilebilir.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import httpx

from src.dashboard.config import DashboardConfig
from src.dashboard.errors import FetchFailure, StreamTransportError

logger = logging.getLogger(__name__)

DEFAULT_EVENT = "message"


@dataclass(frozen=True)
class StreamEvent:
    event: str
    data: str


class SSEDecoder:
    """Satır satır SSE ayrıştırıcı.

    `event:` olay adını, `data:` satırları veriyi belirler; boş satır olayı
    gönderir. `:` ile başlayan satırlar yorumdur, `id`/`retry` yok sayılır.
    """

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []

    def feed(self, line: str) -> Optional[StreamEvent]:
        line = line.rstrip("\r\n")
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        return None

    def flush(self) -> None:
        """Akış boş satır olmadan kapandığında yarım olayı atar."""
        if self._data or self._event:
            logger.debug("Tamamlanmamış SSE olayı atıldı: %s", self._event or DEFAULT_EVENT)
        self._event = ""
        self._data = []

    def _dispatch(self) -> Optional[StreamEvent]:
        name, data = self._event, "\n".join(self._data)
        self._event = ""
        self._data = []
        # Verisiz varsayılan olay gönderilmez; adlı olaylar (ör. end) verisiz de geçer
        if not name and not data:
            return None
        return StreamEvent(event=name or DEFAULT_EVENT, data=data)


class BackendClient:
    """Supply chain backend'i için asenkron HTTP istemcisi."""

    def __init__(
        self,
        config: DashboardConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        # httpx istemcisi - dependency injection destekli
        self._http = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.request_timeout, connect=10.0),
            verify=config.verify_ssl,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # --- Okuma modelleri ---

    async def fetch_inventory(self) -> Any:
        return await self._get_json("inventory", self.config.inventory_path)

    async def fetch_purchase_orders(self) -> Any:
        return await self._get_json("purchase_orders", self.config.purchase_orders_path)

    async def fetch_sla_violations(self) -> Any:
        return await self._get_json("sla_violations", self.config.sla_violations_path)

    async def fetch_metrics(self) -> Any:
        if not self.config.metrics_path:
            raise FetchFailure("metrics", "metrics_path yapılandırılmamış")
        return await self._get_json("metrics", self.config.metrics_path)

    async def fetch_run_result(self) -> Any:
        """GET /run - tek parça birleşik sonuç (push uzlaştırma)."""
        return await self._get_json("run", self.config.run_path)

    async def _get_json(self, resource: str, path: str) -> Any:
        """GET + JSON; geçici hatalarda üstel bekleme ile tekrar dener."""
        attempt = 0
        while True:
            try:
                return await self._get_json_once(resource, path)
            except FetchFailure as e:
                if not e.retryable or attempt >= self.config.fetch_retries:
                    raise
                delay = self.config.retry_backoff * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "%s tekrar deneniyor (%d/%d, %.2fs sonra): %s",
                    resource, attempt, self.config.fetch_retries, delay, e.reason,
                )
                await asyncio.sleep(delay)

    async def _get_json_once(self, resource: str, path: str) -> Any:
        try:
            response = await self._http.get(path)
        except httpx.HTTPError as e:
            raise FetchFailure(resource, f"bağlantı hatası: {e}", retryable=True) from e

        if response.status_code >= 400:
            raise FetchFailure(
                resource,
                f"HTTP {response.status_code}",
                retryable=response.status_code >= 500,
            )
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FetchFailure(resource, f"geçersiz JSON: {e}") from e

    # --- Olay akışı ---

    async def stream_run(self) -> AsyncIterator[StreamEvent]:
        """Çalıştırma akışını açar ve olayları geldiği sırayla üretir.

        Sunucu bağlantıyı kapattığında normal biter; açma/okuma hataları
        StreamTransportError olarak yükselir. Üreticiyi erken kapatmak
        (aclose) bağlantıyı da kapatır.
        """
        decoder = SSEDecoder()
        try:
            async with self._http.stream(
                "GET",
                self.config.stream_path,
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
                timeout=httpx.Timeout(self.config.request_timeout, read=None),
            ) as response:
                if response.status_code >= 400:
                    raise StreamTransportError(f"Akış açılamadı: HTTP {response.status_code}")
                logger.info("Olay akışı açıldı: %s", self.config.stream_path)
                async for line in response.aiter_lines():
                    event = decoder.feed(line)
                    if event is not None:
                        yield event
        except httpx.HTTPError as e:
            raise StreamTransportError(f"Akış bağlantı hatası: {e}") from e
        except UnicodeDecodeError as e:
            raise StreamTransportError(f"Akış verisi çözülemedi: {e}") from e
        decoder.flush()
