from __future__ import annotations

import os
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Carica .env (root del progetto o directory corrente)
load_dotenv()

# DB SQLite su file nella root del progetto (accanto a streamlit_app.py)
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "frontdesk.sqlite"


class Settings:
    """Configurazione runtime, letta una volta dalle variabili d'ambiente."""

    def __init__(self) -> None:
        self.database_url = os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")
        self.db_timeout_seconds = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))
        self.sql_echo = os.getenv("SQL_ECHO") == "1"  # metti 1 se vuoi vedere le query

        self.clinic_timezone = os.getenv("CLINIC_TIMEZONE", "UTC")

        # Unica credenziale statica del banco accettazione
        self.admin_username = os.getenv("CLINIC_ADMIN_USER", "admin")
        self.admin_password = os.getenv("CLINIC_ADMIN_PASSWORD", "clinic123")

        # In produzione: mettila in variabile d'ambiente
        self.jwt_secret = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
        self.jwt_algorithm = "HS256"
        self.jwt_expire_minutes = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_dir = os.getenv("LOG_DIR") or None

    @property
    def tz(self) -> tzinfo:
        if self.clinic_timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.clinic_timezone)


settings = Settings()
