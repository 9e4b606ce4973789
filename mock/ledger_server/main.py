from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from pathlib import Path
import asyncio
import json
import os
import time

app = FastAPI(title="Mock Catalog/Ledger Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/ledger_stub") if os.path.exists("/ledger_stub") else Path(__file__).resolve().parents[1] / "ledger_stub"
SETTLEMENT_DELAY = float(os.environ.get("MOCK_SETTLEMENT_DELAY", "2.0"))

# Receipts by idempotency key; replays return the stored receipt
_settlements: dict[str, dict] = {}


def _load(name: str):
    return json.loads((DATA_DIR / name).read_text())


@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/catalog/wallets")
def get_wallets(user_id: str):
    file = DATA_DIR / f"wallets_{user_id}.json"
    if not file.exists():
        raise HTTPException(status_code=404, detail="user not found")
    return JSONResponse(content=json.loads(file.read_text()))

@app.get("/catalog/tiers")
def get_tiers():
    return JSONResponse(content=_load("tiers.json"))

@app.get("/catalog/targets/{target_id}")
def get_target(target_id: str):
    targets = _load("targets.json")
    if target_id not in targets:
        raise HTTPException(status_code=404, detail="target not found")
    return JSONResponse(content=targets[target_id])

@app.post("/ledger/settlements")
async def submit_settlement(request: Request, idempotency_key: str = Header(..., alias="Idempotency-Key")):
    if idempotency_key in _settlements:
        return JSONResponse(content=_settlements[idempotency_key])

    body = await request.json()
    await asyncio.sleep(SETTLEMENT_DELAY)
    receipt = {
        "transaction_id": f"TXN-{int(time.time() * 1000)}",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "final_amount": body["total_due"],
        "credit_applied": body["credit_applied"],
        "instrument_amount": body["remaining_due"],
        "instrument_id": body.get("instrument_id"),
        "currency": body["currency"],
    }
    _settlements[idempotency_key] = receipt
    return JSONResponse(content=receipt)
