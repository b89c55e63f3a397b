# ============================================================
# app.py - Point d'entrée du service Notification
# ------------------------------------------------------------
# Lance le consumer RabbitMQ dans un thread au démarrage.
# ============================================================
import logging, os, threading

from fastapi import FastAPI

from notification.consumer import start_consumer

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s [%(name)s] %(levelname)s %(message)s")

app = FastAPI(title="Notification Service")


@app.on_event("startup")
def startup():
    threading.Thread(target=start_consumer, daemon=True).start()


@app.get("/health")
def health():
    return {"ok": True}
