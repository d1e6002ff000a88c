from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Dict, Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from syndicate import Engine, EngineError, Outcome, RoomNotFound, WSClient, WSClientType
from syndicate.models import private_snapshot, public_snapshot

logger = logging.getLogger(__name__)

app = FastAPI(title="Syndicate")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ENGINE = Engine()


def _result(outcome: Outcome) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "ok": outcome.ok,
        "status": outcome.status.value,
        "room": public_snapshot(outcome.room),
    }
    if outcome.error:
        body["error"] = outcome.error
    if outcome.player_id:
        body["player_id"] = outcome.player_id
    return body


async def _run(call: Awaitable[Outcome]) -> Dict[str, Any]:
    try:
        return _result(await call)
    except EngineError as e:
        return {"ok": False, "status": e.status.value, "error": str(e)}


def _missing(*names: str) -> Dict[str, Any]:
    return {"ok": False, "error": f"Missing {' or '.join(names)}"}


def _index(payload: Dict[str, Any]) -> Optional[int]:
    try:
        return int(payload["card_index"])
    except (KeyError, TypeError, ValueError):
        return None


@app.get("/")
async def root():
    return {"ok": True, "hint": "POST /api/rooms to open a room, then share its code."}


@app.get("/api/health")
async def health():
    return {"ok": True}


@app.post("/api/rooms")
async def api_create_room(payload: Dict[str, Any]):
    name = (payload.get("name") or "").strip() or "Player"
    return await _run(ENGINE.create_room(name))


@app.get("/api/rooms/{code}")
async def api_room(code: str):
    try:
        return {"ok": True, "room": await ENGINE.public_snapshot(code.upper())}
    except RoomNotFound as e:
        return {"ok": False, "status": e.status.value, "error": str(e)}


@app.get("/api/rooms/{code}/players/{player_id}")
async def api_player_view(code: str, player_id: str):
    try:
        data = await ENGINE.private_snapshot(code.upper(), player_id)
    except RoomNotFound as e:
        return {"ok": False, "status": e.status.value, "error": str(e)}
    if not data:
        return {"ok": False, "error": "Unknown player"}
    return {"ok": True, "room": data}


@app.post("/api/rooms/{code}/join")
async def api_join(code: str, payload: Dict[str, Any]):
    name = (payload.get("name") or "").strip() or "Player"
    return await _run(ENGINE.join(code.upper(), name))


@app.post("/api/rooms/{code}/config")
async def api_config(code: str, payload: Dict[str, Any]):
    owner_id = payload.get("owner_id")
    if not owner_id:
        return _missing("owner_id")
    cfg = {k: v for k, v in payload.items() if k != "owner_id"}
    try:
        return await _run(ENGINE.configure(code.upper(), owner_id, cfg))
    except (TypeError, ValueError) as e:
        return {"ok": False, "error": f"Invalid setting: {e}"}


@app.post("/api/rooms/{code}/start")
async def api_start(code: str, payload: Dict[str, Any]):
    owner_id = payload.get("owner_id")
    if not owner_id:
        return _missing("owner_id")
    return await _run(ENGINE.start_game(code.upper(), owner_id))


@app.post("/api/rooms/{code}/nominate")
async def api_nominate(code: str, payload: Dict[str, Any]):
    player_id = payload.get("player_id")
    deputy_id = payload.get("deputy_id")
    if not player_id or not deputy_id:
        return _missing("player_id", "deputy_id")
    return await _run(ENGINE.nominate_deputy(code.upper(), player_id, deputy_id))


@app.post("/api/rooms/{code}/vote")
async def api_vote(code: str, payload: Dict[str, Any]):
    player_id = payload.get("player_id")
    choice = payload.get("choice")
    if not player_id or not choice:
        return _missing("player_id", "choice")
    return await _run(ENGINE.submit_vote(code.upper(), player_id, choice))


@app.post("/api/rooms/{code}/draw")
async def api_draw(code: str, payload: Dict[str, Any]):
    player_id = payload.get("player_id")
    if not player_id:
        return _missing("player_id")
    return await _run(ENGINE.draw_policies(code.upper(), player_id))


@app.post("/api/rooms/{code}/discard")
async def api_discard(code: str, payload: Dict[str, Any]):
    player_id = payload.get("player_id")
    card_index = _index(payload)
    if not player_id or card_index is None:
        return _missing("player_id", "card_index")
    return await _run(ENGINE.director_discard(code.upper(), player_id, card_index))


@app.post("/api/rooms/{code}/enact")
async def api_enact(code: str, payload: Dict[str, Any]):
    player_id = payload.get("player_id")
    card_index = _index(payload)
    if not player_id or card_index is None:
        return _missing("player_id", "card_index")
    return await _run(ENGINE.deputy_enact(code.upper(), player_id, card_index))


@app.post("/api/rooms/{code}/auto-enact")
async def api_auto_enact(code: str, payload: Dict[str, Any]):
    player_id = payload.get("player_id")
    if not player_id:
        return _missing("player_id")
    return await _run(ENGINE.auto_enact(code.upper(), player_id))


@app.post("/api/rooms/{code}/power")
async def api_power(code: str, payload: Dict[str, Any]):
    player_id = payload.get("player_id")
    power = payload.get("power")
    if not player_id or not power:
        return _missing("player_id", "power")
    return await _run(ENGINE.resolve_power(code.upper(), player_id, power, payload.get("target_id")))


@app.post("/api/rooms/{code}/toggle-alive")
async def api_toggle_alive(code: str, payload: Dict[str, Any]):
    owner_id = payload.get("owner_id")
    player_id = payload.get("player_id")
    if not owner_id or not player_id:
        return _missing("owner_id", "player_id")
    return await _run(ENGINE.toggle_alive(code.upper(), owner_id, player_id))


@app.post("/api/rooms/{code}/end")
async def api_end(code: str, payload: Dict[str, Any]):
    owner_id = payload.get("owner_id")
    if not owner_id:
        return _missing("owner_id")
    return await _run(ENGINE.end_game(code.upper(), owner_id))


@app.websocket("/ws/{code}")
async def websocket_endpoint(ws: WebSocket, code: str):
    await ws.accept()
    code = code.upper()
    qp = dict(ws.query_params)
    client = qp.get("client", "table")
    player_id = qp.get("player_id")

    if client not in ("table", "player"):
        await ws.close()
        return
    try:
        room = await ENGINE.room(code)
    except RoomNotFound:
        await ws.close()
        return

    ctype = WSClientType.TABLE if client == "table" else WSClientType.PLAYER
    client_obj = WSClient(
        websocket=ws,
        room_code=code,
        client_type=ctype,
        player_id=player_id if ctype == WSClientType.PLAYER else None,
    )
    ENGINE.attach(client_obj)

    await ws.send_text(json.dumps({"type": "HELLO", "client": client, "player_id": player_id}))
    await ws.send_text(json.dumps({"type": "PUBLIC_STATE", "data": public_snapshot(room)}))
    if ctype == WSClientType.PLAYER and player_id:
        await ws.send_text(json.dumps({"type": "PRIVATE_STATE", "data": private_snapshot(room, player_id)}))

    try:
        while True:
            msg = await ws.receive_text()
            try:
                data = json.loads(msg)
            except ValueError:
                data = {"type": "PING"}
            if data.get("type") == "PING":
                await ws.send_text(json.dumps({"type": "PONG"}))
    except Exception:
        logger.debug("[%s] websocket client left", code)
        ENGINE.detach(client_obj)
