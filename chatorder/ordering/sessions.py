# chatorder/ordering/sessions.py
from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, TypeVar
from uuid import uuid4

from .cart import CartLine, cart_total

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(str, Enum):
    INITIAL = "initial"
    CONFIRMING = "confirming"


@dataclass
class ChatSession:
    session_id: str
    state: SessionState = SessionState.INITIAL
    cart: List[CartLine] = field(default_factory=list)
    last_message: str = ""
    version: int = 0
    # fresh per conversation; keeps checkout keys unique across restarts and reused ids
    checkout_nonce: str = field(default_factory=lambda: uuid4().hex)

    @property
    def total(self) -> float:
        return cart_total(self.cart)

    def clear(self) -> None:
        self.state = SessionState.INITIAL
        self.cart = []
        self.checkout_nonce = uuid4().hex


class SessionStore:
    """
    In-memory conversation state, one entry per session id.

    `with_lock` is the only way to mutate a session: it serializes the
    read-modify-write for one id and stores the working copy only if the
    callback returns normally. Locks are per id, so different conversations
    never wait on each other.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, ChatSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def get(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = ChatSession(session_id=session_id)
            self._sessions[session_id] = session
        return copy.deepcopy(session)

    def put(self, session_id: str, session: ChatSession) -> None:
        self._sessions[session_id] = copy.deepcopy(session)

    async def with_lock(self, session_id: str, fn: Callable[[ChatSession], Awaitable[T]]) -> T:
        async with self._lock_for(session_id):
            working = self.get(session_id)
            result = await fn(working)
            working.version += 1
            self.put(session_id, working)
            return result

    async def reset(self, session_id: str) -> ChatSession:
        async def _clear(session: ChatSession) -> ChatSession:
            session.clear()
            return session

        return await self.with_lock(session_id, _clear)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def close(self) -> None:
        logger.debug("Dropping %d chat sessions", len(self._sessions))
        self._sessions.clear()
        self._locks.clear()
