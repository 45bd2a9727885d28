"""Dashboard hata tipleri.

Hiçbiri süreci sonlandırmaz: her hata "son bilinen iyi durum + görünür uyarı"
şeklinde ele alınır.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Tüm dashboard hatalarının temel sınıfı."""
    pass


class FetchFailure(DashboardError):
    """Bir kaynağın GET isteği başarısız oldu."""

    def __init__(self, resource: str, reason: str, retryable: bool = False):
        super().__init__(f"{resource} alınamadı: {reason}")
        self.resource = resource
        self.reason = reason
        self.retryable = retryable


class StreamTransportError(DashboardError):
    """Olay akışı açılamadı, koptu ya da çözülemedi."""
    pass


class MalformedPayload(DashboardError):
    """Beklenen alanları eksik ya da tipi bozuk veri."""
    pass
