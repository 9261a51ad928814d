from __future__ import annotations
import time
from typing import Optional

from .routers.blockchain_demo import _sessions
from .settings import settings


def purge_idle_demo_sessions(now: Optional[float] = None) -> int:
	# Chains live only as long as the visitor keeps using them
	now = time.time() if now is None else now
	threshold = now - settings.demo_session_idle_minutes * 60
	stale = [sid for sid, session in _sessions.items() if session.last_seen < threshold]
	for sid in stale:
		_sessions.pop(sid, None)
	return len(stale)
