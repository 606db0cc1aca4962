"""
In-memory session registry.

Each query session owns one orchestrator and the push-fed device location
provider behind it. Nothing here survives a restart; sessions idle for longer
than SESSION_IDLE_TTL_SECONDS are stopped and dropped on the next sweep.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from services.device_location import PushLocationProvider
from services.orchestrator import NearbySearchOrchestrator
from settings import settings

logger = logging.getLogger(__name__)


@dataclass
class QuerySession:
    orchestrator: NearbySearchOrchestrator
    provider: PushLocationProvider
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_seen_at: datetime = field(default_factory=datetime.utcnow)

    def touch(self) -> None:
        self.last_seen_at = datetime.utcnow()


# In-memory storage
sessions_db: Dict[str, QuerySession] = {}


def get_session(session_id: str) -> Optional[QuerySession]:
    session = sessions_db.get(session_id)
    if session:
        session.touch()
    return session


def close_session(session_id: str) -> bool:
    session = sessions_db.pop(session_id, None)
    if session is None:
        return False
    session.orchestrator.stop()
    return True


def sweep_idle_sessions(now: Optional[datetime] = None) -> List[str]:
    """Stop and drop sessions not used within the idle TTL; 0 disables the sweep."""
    ttl = settings.SESSION_IDLE_TTL_SECONDS
    if ttl <= 0:
        return []
    cutoff = (now or datetime.utcnow()) - timedelta(seconds=ttl)
    expired = [sid for sid, s in sessions_db.items() if s.last_seen_at < cutoff]
    for sid in expired:
        close_session(sid)
    if expired:
        logger.info("Closed %d idle query session(s)", len(expired))
    return expired


def close_all_sessions() -> None:
    for session_id in list(sessions_db):
        close_session(session_id)
