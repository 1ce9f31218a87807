import time
from typing import Optional, List, Dict
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Form
from pydantic import BaseModel
from ..crypto.crypto_helpers import GRID_SIZE, encrypt_bytes, decrypt_envelope, load_shared_key, shared_key_path

app = FastAPI(title="MirrorCrypt Messenger (LAN demo)")

KEY_PATH = shared_key_path()
SHARED_KEY = load_shared_key(auto_create=True)

MAILBOX: List[Dict] = []
CLIENTS: Dict[str, WebSocket] = {}

class Envelope(BaseModel):
    from_user: str
    to_user: str
    key_id: str
    grid_size: int = GRID_SIZE
    length: int
    content_type: str = "application/octet-stream"
    filename: Optional[str] = None
    ciphertext: str
    sent_at: float

@app.post("/send")
async def send_message(env: Envelope):
    _, ok = decrypt_envelope(SHARED_KEY, env.model_dump())
    item = env.model_dump() | {"ok": bool(ok)}
    MAILBOX.append(item)

    ws = CLIENTS.get(env.to_user)
    if ws:
        try:
            await ws.send_json(item)
        except (WebSocketDisconnect, RuntimeError):
            CLIENTS.pop(env.to_user, None)
    return {"stored": True, "ok": bool(ok)}

@app.get("/inbox")
def inbox(user: str, limit: int = 50):
    out = [m for m in MAILBOX if m["to_user"] == user]
    return list(reversed(out[-limit:])) if limit > 0 else []

@app.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
    await websocket.accept()
    user = websocket.query_params.get("user") or "anon"
    CLIENTS[user] = websocket
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        if CLIENTS.get(user) is websocket:
            CLIENTS.pop(user, None)

@app.post("/encrypt_text_demo")
def encrypt_text_demo(text: str = Form(...), to_user: str = Form(...), from_user: str = Form("demo")):
    env = encrypt_bytes(SHARED_KEY, text.encode("utf-8"))
    env |= {
        "from_user": from_user,
        "to_user": to_user,
        "content_type": "text/plain; charset=utf-8",
        "filename": None,
        "sent_at": time.time(),
    }
    MAILBOX.append(env | {"ok": True})
    return env
