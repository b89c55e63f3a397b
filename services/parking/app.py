# ============================================================
# app.py - Point d'entrée du service Parking
# ------------------------------------------------------------
# Au démarrage :
#   1. Crée les tables et initialise le catalogue de démo
#   2. Lance le sweeper dans un thread daemon
# Les échecs par requête (ParkingError) deviennent des erreurs
# JSON avec leur statut HTTP ; aucun n'arrête le processus.
# ============================================================
import logging, threading

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from parking import config
from parking.api import ledger, router
from parking.db import create_tables, engine, open_session
from parking.errors import Forbidden, ParkingError, TransientError
from parking.registry import seed_catalog
from parking.sweeper import start_sweeper

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s [%(name)s] %(levelname)s %(message)s")
log = logging.getLogger(__name__)

app = FastAPI(title="Parking Reservation Service")


@app.on_event("startup")
def start():
    create_tables(engine)
    if config.SEED_CATALOG:
        with open_session(engine) as s:
            seed_catalog(s)
    threading.Thread(target=start_sweeper, args=(ledger,), daemon=True).start()


@app.exception_handler(ParkingError)
def parking_error(request: Request, exc: ParkingError):
    if isinstance(exc, TransientError):
        log.error("%s %s: %s", request.method, request.url.path, exc.message)
    elif isinstance(exc, Forbidden):
        log.warning("%s %s: forbidden", request.method, request.url.path)
    else:
        log.info("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
def health():
    return {"ok": True}


app.include_router(router)
