# ============================================================
# config.py - Configuration du service
# ------------------------------------------------------------
# Tout vient des variables d'environnement : la même image tourne
# en local (SQLite) et en compose (PostgreSQL + RabbitMQ).
# ============================================================
import os
from zoneinfo import ZoneInfo

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./parking.db")
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "localhost")
EVENTS_ENABLED = os.getenv("EVENTS_ENABLED", "1") == "1"

# les datetimes naïfs envoyés par les clients sont lus dans cette zone
LOCAL_TZ = ZoneInfo(os.getenv("LOCAL_TZ", "Asia/Kolkata"))

# réessais sur pannes transitoires du stockage (backoff exponentiel)
RETRY_ATTEMPTS = int(os.getenv("RETRY_ATTEMPTS", "3"))
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "0.1"))

# 0 désactive le sweeper de fin de réservation
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))

SEED_CATALOG = os.getenv("SEED_CATALOG", "1") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
