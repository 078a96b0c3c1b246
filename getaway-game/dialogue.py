"""NPC dialogue coordinator: message batching, dispatch, history and side effects."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Protocol

import game_config as config
from catalog import EMPTY_REPLY, FALLBACK_REPLY, GRANT_RULES, chase_triggered
from chat_client import ChatCompletionError
from errors import NotFoundError
from models import NpcState, Room
from objectives import ObjectiveEvaluator
from pursuit import PursuitEngine
from registry import SessionRegistry
from room_hub import RoomHub, npc_group, room_group
from timers import spawn

log = logging.getLogger(__name__)

_USER_TURN = re.compile(r"^(.+?):\s*(.+)$", re.DOTALL)


class CompletionBackend(Protocol):
    async def complete(self, messages: list[dict[str, str]]) -> str: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def format_history(npc: NpcState) -> list[dict[str, object]]:
    """Conversation history as chat lines for a player entering the conversation."""
    lines: list[dict[str, object]] = []
    for turn in npc.history:
        role = turn.get("role")
        content = turn.get("content", "")
        if role == "user":
            match = _USER_TURN.match(content)
            if match:
                lines.append({"sender": match.group(1), "message": match.group(2), "is_npc": False})
        elif role == "assistant":
            lines.append({"sender": npc.name, "message": content, "is_npc": True})
    return lines


class DialogueCoordinator:
    def __init__(
        self,
        registry: SessionRegistry,
        hub: RoomHub,
        chat: CompletionBackend,
        pursuit: PursuitEngine,
        objectives: ObjectiveEvaluator,
        debounce_seconds: float = config.NPC_DEBOUNCE_SECONDS,
        history_limit: int = config.NPC_HISTORY_LIMIT,
    ) -> None:
        self._registry = registry
        self._hub = hub
        self._chat = chat
        self._pursuit = pursuit
        self._objectives = objectives
        self._debounce_seconds = debounce_seconds
        self._history_limit = history_limit
        self._inflight: set[asyncio.Task[object]] = set()

    def enter_chat(self, conn_id: str, room: Room, npc_id: str) -> dict[str, object]:
        npc = room.npcs.get(npc_id)
        if npc is None:
            raise NotFoundError("NPC not found")
        self._hub.join(conn_id, npc_group(room.code, npc_id), room_code=room.code)
        return {
            "type": "npc_chat_entered",
            "npc_id": npc_id,
            "npc_name": npc.name,
            "location": npc.location,
            "history": format_history(npc),
        }

    def leave_chat(self, conn_id: str, code: str, npc_id: str) -> None:
        self._hub.leave(conn_id, npc_group(code, npc_id))

    async def submit_message(self, room: Room, npc_id: str, sender_name: str, text: str) -> None:
        npc = room.npcs.get(npc_id)
        if npc is None:
            raise NotFoundError("NPC not found")
        npc.pending.append({"role": "user", "content": f"{sender_name}: {text}"})
        await self._hub.broadcast(
            npc_group(room.code, npc_id),
            {
                "type": "npc_message_received",
                "npc_id": npc_id,
                "sender": sender_name,
                "message": text,
                "is_npc": False,
                "timestamp": _now_ms(),
            },
        )
        if not self._registry.is_live(room):
            return
        npc.timer.cancel()
        if len(npc.pending) >= 2:
            self._start_dispatch(room, npc_id)
        elif npc.pending:
            npc.timer.arm(self._debounce_seconds, lambda: self._start_dispatch(room, npc_id))

    async def dispatch(self, room: Room, npc_id: str) -> None:
        """Send every queued message for ``npc_id`` to the completion backend."""
        npc = room.npcs.get(npc_id)
        if npc is None or not self._registry.is_live(room):
            return
        npc.timer.cancel()
        if not npc.pending:
            return
        batch = npc.pending
        npc.pending = []
        group = npc_group(room.code, npc_id)
        log.info("Dispatching %d message(s) to %s in room %s", len(batch), npc_id, room.code)

        await self._hub.broadcast(group, {"type": "npc_typing", "npc_id": npc_id, "is_typing": True})
        request = [{"role": "system", "content": npc.system_prompt}, *npc.history, *batch]
        reply = ""
        failed = False
        try:
            reply = await self._chat.complete(request)
        except ChatCompletionError as exc:
            log.warning("Chat completion failed for %s in room %s: %s", npc_id, room.code, exc)
            failed = True
        except Exception:
            log.exception("Unexpected chat backend error for %s in room %s", npc_id, room.code)
            failed = True

        if not self._registry.is_live(room):
            return

        if failed or not reply:
            await self._say(room, npc, FALLBACK_REPLY if failed else EMPTY_REPLY)
        else:
            npc.history.extend(batch)
            npc.history.append({"role": "assistant", "content": reply})
            if len(npc.history) > self._history_limit:
                del npc.history[: len(npc.history) - self._history_limit]
            await self._say(room, npc, reply)
            await self._apply_side_effects(room, npc_id, reply)

        if not self._registry.is_live(room):
            return
        await self._hub.broadcast(group, {"type": "npc_typing", "npc_id": npc_id, "is_typing": False})
        await self._objectives.settle(room)

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _start_dispatch(self, room: Room, npc_id: str) -> None:
        task = spawn(self.dispatch(room, npc_id), name=f"dispatch:{room.code}:{npc_id}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _say(self, room: Room, npc: NpcState, text: str) -> None:
        await self._hub.broadcast(
            npc_group(room.code, npc.npc_id),
            {
                "type": "npc_message_received",
                "npc_id": npc.npc_id,
                "sender": npc.name,
                "message": text,
                "is_npc": True,
                "timestamp": _now_ms(),
            },
        )

    async def _apply_side_effects(self, room: Room, npc_id: str, reply: str) -> None:
        npc_name = room.npcs[npc_id].name
        for rule in GRANT_RULES:
            if rule.npc_id != npc_id or not rule.matches(reply):
                continue
            if not room.grant(rule.item):
                continue
            log.info("Room %s received %s from %s", room.code, rule.item, npc_id)
            await self._hub.broadcast(
                room_group(room.code),
                {"type": "item_received", "item": rule.item, "from": npc_name},
            )
            if not self._registry.is_live(room):
                return
        if chase_triggered(npc_id, reply):
            await self._pursuit.start(room)
