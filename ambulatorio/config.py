from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# DB SQLite su file nella root del progetto, sovrascrivibile da variabile d'ambiente
DB_PATH = Path(__file__).resolve().parents[1] / "ambulatorio.sqlite"
DATABASE_URL = os.getenv("AMBULATORIO_DATABASE_URL", f"sqlite:///{DB_PATH}")

SQL_ECHO = os.getenv("AMBULATORIO_SQL_ECHO", "0").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("AMBULATORIO_LOG_LEVEL", "INFO").upper()
SEED_ON_STARTUP = os.getenv("AMBULATORIO_SEED", "1").lower() in ("1", "true", "yes")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
