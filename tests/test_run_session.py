"""RunSession durum makinesi unit testleri."""

import asyncio

import httpx

from src.dashboard.backend_client import BackendClient, StreamEvent
from src.dashboard.config import DashboardConfig
from src.dashboard.errors import StreamTransportError
from src.dashboard.log_buffer import LogBuffer
from src.dashboard.read_model_store import ReadModelStore
from src.dashboard.reconcile import PullReconciler, PushReconciler, Reconciler
from src.dashboard.run_session import RunSession
from src.models.supply_chain import RunStatus

END = StreamEvent(event="end", data="")


def _msg(text: str) -> StreamEvent:
    return StreamEvent(event="message", data=text)


class _FakeBackend:
    """Kuyruktan beslenen sahte olay akışı.

    Kuyruğa StreamEvent -> olay, Exception -> hata, None -> bitişsiz kapanma.
    """

    def __init__(self):
        self.config = DashboardConfig()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.streams_opened = 0
        self.open_streams = 0

    async def stream_run(self):
        self.streams_opened += 1
        self.open_streams += 1
        try:
            while True:
                item = await self.queue.get()
                if item is None:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.open_streams -= 1

    async def drain(self):
        """Kuyruktaki her şey tüketilene kadar döngüyü çevirir."""
        for _ in range(100):
            await asyncio.sleep(0)
            if self.queue.empty():
                break
        await asyncio.sleep(0)


class _RecordingReconciler(Reconciler):
    name = "recording"

    def __init__(self, error=None):
        self.calls = []
        self.session = None
        self.error = error

    async def reconcile(self, store, client):
        # Çağrı anındaki durum: akış kapalı ve durum yazılmış olmalı
        self.calls.append((self.session.status, client.open_streams))
        if self.error:
            raise self.error
        return True


def _create_session(backend, reconciler=None, clock=None) -> RunSession:
    reconciler = reconciler or _RecordingReconciler()
    session = RunSession(
        backend.config,
        ReadModelStore(),
        LogBuffer(),
        client=backend,
        reconciler=reconciler,
        clock=clock or (lambda: "12:00:00"),
    )
    if isinstance(reconciler, _RecordingReconciler):
        reconciler.session = session
    return session


class TestLogStreaming:
    def test_n_lines_in_arrival_order(self):
        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend)
            session.start()
            for i in range(25):
                backend.queue.put_nowait(_msg(f"line {i}"))
            await backend.drain()
            messages = session.log_buffer.messages()
            status = session.status
            await session.close()
            return messages, status

        messages, status = asyncio.run(scenario())
        assert messages == [f"line {i}" for i in range(25)]
        assert status is RunStatus.RUNNING

    def test_messages_are_trimmed_and_timestamped(self):
        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend, clock=lambda: "09:15:00")
            session.start()
            backend.queue.put_nowait(_msg("  Checking inventory levels...  \n"))
            backend.queue.put_nowait(END)
            await session.wait()
            return session.log_buffer.entries()

        entries = asyncio.run(scenario())
        assert len(entries) == 1
        assert entries[0].message == "Checking inventory levels..."
        assert entries[0].timestamp == "09:15:00"

    def test_named_events_are_not_logged(self):
        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend)
            session.start()
            backend.queue.put_nowait(StreamEvent(event="progress", data="50%"))
            backend.queue.put_nowait(_msg("real line"))
            backend.queue.put_nowait(END)
            await session.wait()
            return session.log_buffer.messages()

        assert asyncio.run(scenario()) == ["real line"]

    def test_new_run_clears_previous_logs(self):
        """start(); a; start(); b => yalnızca b."""

        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend)
            session.start()
            backend.queue.put_nowait(_msg("a"))
            backend.queue.put_nowait(END)
            await session.wait()
            session.start()
            assert session.log_buffer.is_empty
            backend.queue.put_nowait(_msg("b"))
            await backend.drain()
            messages = session.log_buffer.messages()
            await session.close()
            return messages, session.run_seq

        messages, run_seq = asyncio.run(scenario())
        assert messages == ["b"]
        assert run_seq == 2


class TestRunningGuard:
    def test_double_start_opens_one_connection(self):
        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend)
            first = session.start()
            second = session.start()
            await asyncio.sleep(0)
            backend.queue.put_nowait(END)
            await session.wait()
            return first, second, backend.streams_opened

        first, second, opened = asyncio.run(scenario())
        assert first is not None
        assert second is None
        assert opened == 1

    def test_start_allowed_again_after_settle(self):
        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend)
            session.start()
            backend.queue.put_nowait(END)
            await session.wait()
            assert session.start() is not None
            backend.queue.put_nowait(END)
            await session.wait()
            return backend.streams_opened

        assert asyncio.run(scenario()) == 2


class TestTermination:
    def test_end_event_settles_and_reconciles_once(self):
        async def scenario():
            backend = _FakeBackend()
            reconciler = _RecordingReconciler()
            session = _create_session(backend, reconciler)
            session.start()
            assert session.status is RunStatus.RUNNING
            backend.queue.put_nowait(_msg("Placing order PO-1001"))
            backend.queue.put_nowait(END)
            # Bitişten sonra gelenler işlenmez
            backend.queue.put_nowait(_msg("late"))
            await session.wait()
            return session, reconciler, backend

        session, reconciler, backend = asyncio.run(scenario())
        assert session.status is RunStatus.SETTLED
        assert session.last_error is None
        assert reconciler.calls == [(RunStatus.SETTLED, 0)]
        assert session.log_buffer.messages() == ["Placing order PO-1001"]
        assert backend.open_streams == 0

    def test_transport_error_still_reconciles_once(self):
        async def scenario():
            backend = _FakeBackend()
            reconciler = _RecordingReconciler()
            session = _create_session(backend, reconciler)
            session.start()
            backend.queue.put_nowait(_msg("Checking inventory levels..."))
            backend.queue.put_nowait(StreamTransportError("connection reset"))
            await session.wait()
            return session, reconciler

        session, reconciler = asyncio.run(scenario())
        assert session.status is RunStatus.ERROR
        assert session.last_error == "connection reset"
        assert reconciler.calls == [(RunStatus.ERROR, 0)]
        assert session.log_buffer.messages() == ["Checking inventory levels..."]

    def test_close_without_end_is_an_error(self):
        async def scenario():
            backend = _FakeBackend()
            reconciler = _RecordingReconciler()
            session = _create_session(backend, reconciler)
            session.start()
            backend.queue.put_nowait(None)
            await session.wait()
            return session, reconciler

        session, reconciler = asyncio.run(scenario())
        assert session.status is RunStatus.ERROR
        assert session.last_error
        assert len(reconciler.calls) == 1

    def test_reconcile_failure_is_a_warning(self):
        async def scenario():
            backend = _FakeBackend()
            reconciler = _RecordingReconciler(error=RuntimeError("backend exploded"))
            session = _create_session(backend, reconciler)
            session.start()
            backend.queue.put_nowait(END)
            await session.wait()
            return session

        session = asyncio.run(scenario())
        assert session.status is RunStatus.SETTLED
        assert session.reconciling is False
        assert any("backend exploded" in w for w in session.store.warnings)

    def test_new_run_cancels_pending_reconciliation(self):
        class BlockingReconciler(Reconciler):
            name = "blocking"

            def __init__(self):
                self.calls = 0

            async def reconcile(self, store, client):
                self.calls += 1
                if self.calls == 1:
                    await asyncio.Event().wait()
                return True

        async def scenario():
            backend = _FakeBackend()
            reconciler = BlockingReconciler()
            session = _create_session(backend, reconciler)
            first = session.start()
            backend.queue.put_nowait(END)
            await backend.drain()
            assert session.reconciling is True
            second = session.start()
            assert session.reconciling is False
            backend.queue.put_nowait(_msg("x"))
            await backend.drain()
            # Eski görevin iptali işlendikten sonra da bayrak inik kalır
            during_run = (session.status, session.reconciling)
            backend.queue.put_nowait(END)
            await session.wait()
            await asyncio.sleep(0)
            return first, second, reconciler, session, during_run

        first, second, reconciler, session, during_run = asyncio.run(scenario())
        assert first.cancelled()
        assert not second.cancelled()
        assert during_run == (RunStatus.RUNNING, False)
        assert reconciler.calls == 2
        assert session.status is RunStatus.SETTLED
        assert session.reconciling is False


def _combined(order_id: str) -> dict:
    return {
        "inventory_data": [
            {"item_id": "ITM-1", "name": "Widget", "stock_level": 5, "reorder_threshold": 10}
        ],
        "purchase_orders": [
            {"order_id": order_id, "item_id": "ITM-1", "quantity": 50, "supplier": "Acme",
             "order_date": "2024-05-02", "status": "pending"}
        ],
        "restock_plan": [],
        "sla_violations": [],
        "metrics": [],
    }


class _SlowFirstBackend(_FakeBackend):
    """İlk uzlaştırma isteği `release` set edilene kadar bekler, sonrakiler hemen döner."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()
        self.order_calls = 0
        self.run_calls = 0

    async def _answer(self, calls: int, stale, fresh):
        if calls == 1:
            await self.release.wait()
            return stale
        return fresh

    async def fetch_inventory(self):
        return _combined("")["inventory_data"]

    async def fetch_purchase_orders(self):
        self.order_calls += 1
        return await self._answer(
            self.order_calls,
            _combined("PO-OLD")["purchase_orders"],
            _combined("PO-1001")["purchase_orders"],
        )

    async def fetch_sla_violations(self):
        return []

    async def fetch_run_result(self):
        self.run_calls += 1
        return await self._answer(self.run_calls, _combined("PO-OLD"), _combined("PO-1001"))


class TestSupersededReconciliation:
    def _race(self, reconciler):
        async def scenario():
            backend = _SlowFirstBackend()
            session = _create_session(backend, reconciler)
            session.start()
            backend.queue.put_nowait(END)
            for _ in range(5):
                await asyncio.sleep(0)
            assert session.reconciling is True

            session.start()
            backend.queue.put_nowait(END)
            await session.wait()

            # İlk çalıştırmanın yanıtı artık gelse bile uygulanmamalı
            backend.release.set()
            for _ in range(5):
                await asyncio.sleep(0)
            return session, backend

        return asyncio.run(scenario())

    def test_stale_pull_refresh_does_not_overwrite_new_run(self):
        session, backend = self._race(PullReconciler())
        assert backend.order_calls == 2
        assert [o.order_id for o in session.store.purchase_orders] == ["PO-1001"]
        assert session.status is RunStatus.SETTLED
        assert session.reconciling is False
        assert session.store.warnings == []

    def test_stale_push_result_does_not_overwrite_new_run(self):
        session, backend = self._race(PushReconciler())
        assert backend.run_calls == 2
        assert [o.order_id for o in session.store.purchase_orders] == ["PO-1001"]
        assert session.status is RunStatus.SETTLED
        assert session.reconciling is False
        assert session.store.warnings == []


class TestListeners:
    def test_listener_sees_transitions(self):
        seen = []

        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend)
            session.add_listener(lambda s: seen.append(s.status))
            session.start()
            backend.queue.put_nowait(_msg("x"))
            backend.queue.put_nowait(END)
            await session.wait()

        asyncio.run(scenario())
        assert seen[0] is RunStatus.RUNNING
        assert seen[-1] is RunStatus.SETTLED

    def test_failing_listener_does_not_break_run(self):
        def broken(session):
            raise RuntimeError("render failed")

        async def scenario():
            backend = _FakeBackend()
            session = _create_session(backend)
            session.add_listener(broken)
            session.start()
            backend.queue.put_nowait(_msg("x"))
            backend.queue.put_nowait(END)
            await session.wait()
            return session

        session = asyncio.run(scenario())
        assert session.status is RunStatus.SETTLED
        assert session.log_buffer.messages() == ["x"]


# --- Uçtan uca: gerçek BackendClient + sahte HTTP ---

INVENTORY = [
    {"item_id": "ITM-1", "name": "Widget", "stock_level": 5, "reorder_threshold": 10,
     "supplier": "Acme", "last_updated": "2024-05-01"},
]
ORDERS = [
    {"order_id": "PO-1001", "item_id": "ITM-1", "quantity": 50, "supplier": "Acme",
     "order_date": "2024-05-02", "status": "pending", "item_name": "Widget"},
]
STREAM = (
    b"data: Checking inventory levels...\n\n"
    b"data: Placing order PO-1001\n\n"
    b"event: end\ndata: done\n\n"
)


def _create_http_session(routes: dict, **config):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/run-full-stream":
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, content=STREAM
            )
        status, body = routes.get(path, (404, {}))
        return httpx.Response(status, json=body)

    dashboard_config = DashboardConfig(**config)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    client = BackendClient(dashboard_config, http_client=http)
    return RunSession(dashboard_config, ReadModelStore(), LogBuffer(), client=client)


class TestEndToEnd:
    def test_pull_reconciliation_shows_new_order(self):
        async def scenario():
            session = _create_http_session({
                "/inventory": (200, INVENTORY),
                "/purchase-orders": (200, ORDERS),
                "/sla-violations": (200, []),
            })
            assert session.store.purchase_orders == []
            session.start()
            await session.wait()
            await session.client.aclose()
            return session

        session = asyncio.run(scenario())
        assert session.status is RunStatus.SETTLED
        assert session.log_buffer.messages() == [
            "Checking inventory levels...",
            "Placing order PO-1001",
        ]
        assert [o.order_id for o in session.store.purchase_orders] == ["PO-1001"]
        assert session.store.low_stock_count == 1
        assert session.store.warnings == []

    def test_push_reconciliation_applies_run_payload(self):
        combined = {
            "inventory_data": INVENTORY,
            "purchase_orders": ORDERS,
            "restock_plan": [],
            "sla_violations": [
                {"order_id": "PO-1001", "supplier": "Acme", "reason": "late",
                 "reported_on": "2024-05-03"},
            ],
            "metrics": [],
        }

        async def scenario():
            session = _create_http_session({"/run": (200, combined)}, reconcile_strategy="push")
            session.start()
            await session.wait()
            await session.client.aclose()
            return session

        session = asyncio.run(scenario())
        assert session.status is RunStatus.SETTLED
        assert session.store.purchase_orders[0].order_id == "PO-1001"
        assert session.store.sla_violation_count == 1

    def test_partial_refresh_failure_after_run(self):
        async def scenario():
            session = _create_http_session({
                "/inventory": (200, INVENTORY),
                "/purchase-orders": (200, ORDERS),
                "/sla-violations": (500, {}),
            })
            session.start()
            await session.wait()
            await session.client.aclose()
            return session

        session = asyncio.run(scenario())
        assert session.status is RunStatus.SETTLED
        assert len(session.store.purchase_orders) == 1
        assert len(session.store.warnings) == 1
