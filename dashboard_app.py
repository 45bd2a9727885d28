"""
Tedarik Zinciri Dashboard - interaktif konsol.

Backend'den okuma modellerini yukler, 'run' ile backend calistirmasini baslatir
ve olay akisini canli gosterir. Calistirma bitince veriler yeniden uzlastirilir.

Kullanim:
    python dashboard_app.py                  # interaktif
    python dashboard_app.py --run            # tek calistirma, sonra cikis
    python dashboard_app.py --config dashboard.yaml
"""

import asyncio
import logging
import os
import sys

import env_loader
from rich.console import Console
from rich.live import Live

from src.dashboard.config import load_config
from src.dashboard.log_buffer import LogBuffer
from src.dashboard.read_model_store import ReadModelStore
from src.dashboard.run_session import RunSession
from src.dashboard.view import render_dashboard

# Logging
logging.basicConfig(
    level=os.environ.get("SUPPLY_DASHBOARD_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("dashboard_app")
# httpx her istegi INFO'da logluyor, kisalim
logging.getLogger("httpx").setLevel(logging.WARNING)

console = Console()

HELP_TEXT = """
Supply Chain Dashboard
  run      - Backend calistirmasini baslat ve loglari canli izle
  refresh  - Tum okuma modellerini yeniden cek
  show     - Dashboard'u yeniden ciz
  help     - Bu menuyu goster
  exit     - Cikis
"""


def _parse_args(argv: list[str]) -> tuple:
    config_path = None
    if "--config" in argv:
        idx = argv.index("--config")
        if idx + 1 >= len(argv):
            print("--config bir dosya yolu bekliyor")
            sys.exit(2)
        config_path = argv[idx + 1]
    return config_path, "--run" in argv


async def run_live(session: RunSession) -> None:
    """Calistirmayi baslatir ve bitene kadar canli cizer."""
    if session.start() is None:
        console.print("Calistirma zaten suruyor.")
        return

    with Live(render_dashboard(session), console=console, refresh_per_second=8) as live:
        def _redraw(s: RunSession) -> None:
            live.update(render_dashboard(s))

        session.add_listener(_redraw)
        try:
            await session.wait()
        finally:
            session.remove_listener(_redraw)


async def main():
    config_path, run_once = _parse_args(sys.argv[1:])
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        print(f"Yapilandirma hatasi: {e}")
        sys.exit(1)

    store = ReadModelStore()
    session = RunSession(config, store, LogBuffer())
    logger.info("Backend: %s (uzlastirma: %s)", config.base_url, config.reconcile_strategy.value)

    try:
        # Sayfa yuklemesi gibi: once mevcut durumu cek
        await store.refresh_all(session.client)

        if run_once:
            await run_live(session)
            console.print(render_dashboard(session))
            return

        console.print(render_dashboard(session))
        print(HELP_TEXT)
        while True:
            try:
                # input'u thread'de bekle, event loop serbest kalsin
                user_input = (await asyncio.to_thread(input, "\n> ")).strip().lower()
            except (EOFError, KeyboardInterrupt):
                break

            if not user_input:
                continue
            if user_input in ("exit", "quit", "q", "cikis"):
                break
            if user_input in ("help", "h", "yardim"):
                print(HELP_TEXT)
            elif user_input == "run":
                await run_live(session)
                console.print(render_dashboard(session))
            elif user_input == "refresh":
                store.clear_warnings()
                await store.refresh_all(session.client)
                console.print(render_dashboard(session))
            elif user_input == "show":
                console.print(render_dashboard(session))
            else:
                print(f"Bilinmeyen komut: {user_input} (help)")
    finally:
        await session.close()
        print("Temiz cikis")


if __name__ == "__main__":
    asyncio.run(main())
