"""Dashboard giris noktasi icin .env yukleyici; config modulu bundan once import edilir."""
from pathlib import Path
from dotenv import load_dotenv

# SUPPLY_DASHBOARD_* degerleri kabukta tanimliysa .env onlari ezmez
_env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(_env_path, override=False)
