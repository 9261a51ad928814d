from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from pydantic import BaseModel

from ..hash_chain import BlockIndexOutOfRange, Chain, create_chain, default_payloads, edit_block
from ..settings import settings
from .password_gate import require_access


router = APIRouter(prefix="/blockchain-demo", tags=["blockchain-demo"], dependencies=[Depends(require_access)])

logger = logging.getLogger(__name__)

SESSION_COOKIE = "demo-session"


class EditRequest(BaseModel):
	data: str


class ChainState(BaseModel):
	blocks: List[Dict[str, Any]]
	reference: List[Dict[str, Any]]
	compromised: bool


class _DemoSession:
	def __init__(self, size: int) -> None:
		self.session_id: str = uuid.uuid4().hex
		self.size: int = size
		self.last_seen: float = time.time()
		self.reset()

	def reset(self) -> None:
		now = int(time.time() * 1000)
		payloads = default_payloads()
		# The reference copy stands in for "other nodes" and is never edited
		self.chain: Chain = create_chain(payloads, self.size, now=now)
		self.reference: Chain = create_chain(payloads, self.size, now=now)

	def touch(self) -> None:
		self.last_seen = time.time()

	def state(self) -> ChainState:
		return ChainState(
			blocks=self.chain.snapshot(),
			reference=self.reference.snapshot(),
			compromised=self.chain.is_compromised,
		)


_sessions: Dict[str, _DemoSession] = {}


def _evict_oldest(keep: int) -> None:
	if len(_sessions) <= keep:
		return
	by_age = sorted(_sessions.values(), key=lambda s: s.last_seen)
	for session in by_age[: len(_sessions) - max(keep, 0)]:
		_sessions.pop(session.session_id, None)
	logger.info("Evicted %d blockchain demo session(s) over the cap", len(by_age) - len(_sessions))


def _get_session(response: Response, session_id: Optional[str]) -> _DemoSession:
	session = _sessions.get(session_id) if session_id else None
	if session is None:
		_evict_oldest(settings.demo_max_sessions - 1)
		session = _DemoSession(settings.demo_chain_size)
		_sessions[session.session_id] = session
		response.set_cookie(SESSION_COOKIE, session.session_id, httponly=True, path="/")
	session.touch()
	return session


@router.get("", response_model=ChainState)
async def get_chain(response: Response, demo_session: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE)):
	return _get_session(response, demo_session).state()


@router.put("/blocks/{index}", response_model=ChainState)
async def update_block(
	index: int,
	req: EditRequest,
	response: Response,
	demo_session: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
):
	session = _get_session(response, demo_session)
	try:
		edit_block(session.chain, index, req.data)
	except BlockIndexOutOfRange as e:
		raise HTTPException(status_code=404, detail=str(e))
	if session.chain.is_compromised:
		logger.debug("Session %s chain compromised from block %d", session.session_id, index + 1)
	return session.state()


@router.post("/reset", response_model=ChainState)
async def reset_chain(response: Response, demo_session: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE)):
	session = _get_session(response, demo_session)
	session.reset()
	return session.state()
