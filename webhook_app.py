# webhook_app.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import sheets
from sales import process_sale


# --------- App & lifecycle ---------
@asynccontextmanager
async def lifespan(app: FastAPI):
    # On peut démarrer sans config complète ; chaque étape échouera avec un message clair
    cfg = config.settings
    if not cfg.sheet_id:
        logging.warning("GOOGLE_SHEET_ID absent : /inventory renverra le stock de secours (fallback).")
    if not cfg.apps_script_url:
        logging.warning("GOOGLE_APPS_SCRIPT_URL absent : /process-sale échouera.")
    if not (cfg.telegram_bot_token and cfg.telegram_chat_id):
        logging.warning("TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID absents : pas d'alerte de vente.")
    yield


app = FastAPI(title="Merch Self-Checkout", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.settings.cors_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------- Health / keep-alive ---------
@app.get("/")
async def root_get():
    return {"ok": True, "service": "merch-checkout"}


@app.get("/ping")
async def ping_get():
    return {"status": "ok"}


@app.head("/ping")
async def ping_head():
    return ""


# --------- Inventory ---------
@app.get("/inventory")
def inventory():
    # 200 dans tous les cas : les erreurs remontent via "fallback"
    return sheets.inventory_snapshot()


# --------- Sale ---------
@app.post("/process-sale")
async def process_sale_route(request: Request):
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=500, content={"success": False, "error": "Bad JSON"})

    try:
        outcome = await process_sale(payload)
    except Exception as e:
        logging.exception("❌ Unexpected error while processing sale: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e) or "Unknown error occurred"})

    logging.info("Sale pipeline finished: %s", " -> ".join(s.value for s in outcome.trail))
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_response())
