from __future__ import annotations

import json
import logging
import random
import uuid
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from . import machine
from .errors import InvalidTarget, Status
from .gateway import Gateway, Outcome, RoomStore, Transition
from .models import Room, SyndicatePower, VoteChoice, private_snapshot, public_snapshot

logger = logging.getLogger(__name__)

ROOM_CODE_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6


def generate_room_code(rng: random.Random) -> str:
    return "".join(rng.choice(ROOM_CODE_CHARS) for _ in range(ROOM_CODE_LENGTH))


class WSClientType(str, Enum):
    TABLE = "table"
    PLAYER = "player"


@dataclass(eq=False)
class WSClient:
    websocket: WebSocket
    room_code: str
    client_type: WSClientType
    player_id: Optional[str] = None


class Engine:
    """Every player action the UI can take, one coroutine per action.

    Each call returns an Outcome carrying the committed room, or the
    unchanged room and a status when the action no longer applies.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        store: Optional[RoomStore] = None,
        max_attempts: int = 5,
    ) -> None:
        self.rng = rng or random.SystemRandom()
        self.store = store or RoomStore()
        self.gateway = Gateway(self.store, max_attempts=max_attempts)
        self._clients: Set[WSClient] = set()

    # -- lobby --------------------------------------------------------------

    async def create_room(self, name: str) -> Outcome:
        code = generate_room_code(self.rng)
        while code in self.store:
            code = generate_room_code(self.rng)
        owner_id = uuid.uuid4().hex[:8]
        room = machine.new_room(code, owner_id, name)
        await self.store.insert(room)
        logger.info("[%s] Room created by %s", code, room.players[owner_id].name)
        return Outcome(ok=True, status=Status.OK, room=room, player_id=owner_id)

    async def join(self, code: str, name: str) -> Outcome:
        pid = uuid.uuid4().hex[:8]
        outcome = await self._apply(code, "join", partial(machine.join, player_id=pid, name=name))
        if outcome.ok:
            outcome.player_id = pid
        return outcome

    async def configure(self, code: str, owner_id: str, cfg: Dict[str, Any]) -> Outcome:
        return await self._apply(code, "configure", partial(machine.configure, actor_id=owner_id, cfg=cfg))

    async def start_game(self, code: str, owner_id: str) -> Outcome:
        return await self._apply(code, "start_game", partial(machine.start_game, actor_id=owner_id, rng=self.rng))

    # -- rounds -------------------------------------------------------------

    async def nominate_deputy(self, code: str, candidate_id: str, deputy_id: str) -> Outcome:
        return await self._apply(
            code, "nominate_deputy", partial(machine.nominate_deputy, actor_id=candidate_id, deputy_id=deputy_id)
        )

    async def submit_vote(self, code: str, player_id: str, choice: Any) -> Outcome:
        try:
            vote = VoteChoice(choice)
        except ValueError:
            return await self._reject(code, InvalidTarget(f"Unknown vote {choice!r}."))
        return await self._apply(code, "submit_vote", partial(machine.submit_vote, actor_id=player_id, choice=vote))

    async def draw_policies(self, code: str, director_id: str) -> Outcome:
        return await self._apply(code, "draw_policies", partial(machine.draw_policies, actor_id=director_id, rng=self.rng))

    async def director_discard(self, code: str, director_id: str, card_index: int) -> Outcome:
        return await self._apply(
            code, "director_discard", partial(machine.director_discard, actor_id=director_id, card_index=card_index)
        )

    async def deputy_enact(self, code: str, deputy_id: str, card_index: int) -> Outcome:
        return await self._apply(
            code, "deputy_enact", partial(machine.deputy_enact, actor_id=deputy_id, card_index=card_index)
        )

    async def auto_enact(self, code: str, caller_id: str) -> Outcome:
        return await self._apply(code, "auto_enact", partial(machine.auto_enact, actor_id=caller_id, rng=self.rng))

    async def resolve_power(
        self,
        code: str,
        director_id: str,
        power: Any,
        target_id: Optional[str] = None,
    ) -> Outcome:
        try:
            chosen = SyndicatePower(power)
        except ValueError:
            return await self._reject(code, InvalidTarget(f"Unknown power {power!r}."))
        return await self._apply(
            code,
            f"resolve_power:{chosen.value}",
            partial(machine.resolve_power, actor_id=director_id, power=chosen, target_id=target_id, rng=self.rng),
        )

    # -- owner overrides ----------------------------------------------------

    async def toggle_alive(self, code: str, owner_id: str, player_id: str) -> Outcome:
        return await self._apply(code, "toggle_alive", partial(machine.toggle_alive, actor_id=owner_id, player_id=player_id))

    async def end_game(self, code: str, owner_id: str) -> Outcome:
        return await self._apply(code, "end_game", partial(machine.end_game, actor_id=owner_id))

    # -- reads --------------------------------------------------------------

    async def room(self, code: str) -> Room:
        room, _ = await self.store.load(code)
        return room

    async def public_snapshot(self, code: str) -> Dict[str, Any]:
        return public_snapshot(await self.room(code))

    async def private_snapshot(self, code: str, player_id: str) -> Dict[str, Any]:
        return private_snapshot(await self.room(code), player_id)

    # -- plumbing -----------------------------------------------------------

    async def _apply(self, code: str, op: str, transition: Transition) -> Outcome:
        outcome = await self.gateway.transact(code, transition, op=op)
        if outcome.ok:
            await self._sync_room(outcome.room, outcome.lines)
        return outcome

    async def _reject(self, code: str, error: InvalidTarget) -> Outcome:
        room = await self.room(code)
        logger.debug("[%s] %s", code, error)
        return Outcome(ok=False, status=error.status, room=room, error=str(error))

    def attach(self, client: WSClient) -> None:
        self._clients.add(client)

    def detach(self, client: WSClient) -> None:
        self._clients.discard(client)

    async def _send(self, ws: WebSocket, msg: Dict[str, Any]) -> None:
        await ws.send_text(json.dumps(msg, ensure_ascii=False))

    async def _sync_room(self, room: Room, lines: Optional[list] = None) -> None:
        dead_clients = []
        public = {"type": "PUBLIC_STATE", "data": public_snapshot(room)}
        for c in list(self._clients):
            if c.room_code != room.code:
                continue
            try:
                for line in lines or []:
                    await self._send(c.websocket, {"type": "NARRATOR_LINE", "line": line})
                await self._send(c.websocket, public)
                if c.client_type == WSClientType.PLAYER and c.player_id:
                    await self._send(c.websocket, {"type": "PRIVATE_STATE", "data": private_snapshot(room, c.player_id)})
            except Exception:
                dead_clients.append(c)
        for c in dead_clients:
            self._clients.discard(c)

    async def reset(self) -> None:
        self.store = RoomStore()
        self.gateway = Gateway(self.store, max_attempts=self.gateway.max_attempts)
        self._clients = set()
