"""
Analysis sessions and the files they own.

A session is one analysed upload: the decoded Signal, its AnalysisResult and
the exported track files in the session directory. The store is the only
owner; releasing a session deletes its directory. Uploads tagged with a
client_id follow last-request-wins: a newer upload from the same client
replaces the older session, and a result that finishes after it has been
superseded is thrown away on arrival.

The store is not thread-safe; use it from the event loop only.
"""

import itertools
import logging
from collections import OrderedDict
from dataclasses import dataclass, field

from . import config
from .errors import SessionNotFoundError
from .models import AnalysisResult, Signal
from .utils import remove_session_dir

logger = logging.getLogger("splitter.sessions")


@dataclass
class Session:
    session_id: str
    filename: str
    directory: str
    result: AnalysisResult
    files: dict[int, str] = field(default_factory=dict)  # track index -> WAV path
    client_id: str | None = None

    @property
    def signal(self) -> Signal:
        return self.result.source

    @property
    def track_count(self) -> int:
        return len(self.result.channel_volumes)

    def track(self, index: int) -> Signal:
        return self.result.tracks[index]


class SessionStore:
    def __init__(self, max_sessions: int | None = None):
        self.max_sessions = max_sessions or config.MAX_SESSIONS
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._latest_ticket: dict[str, int] = {}
        self._client_session: dict[str, str] = {}
        self._tickets = itertools.count(1)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def begin(self, client_id: str | None = None) -> int:
        """
        Register a new upload and return its ticket.

        A client's previous session is released as soon as it starts a new
        upload, whether or not the new one goes on to succeed.
        """
        ticket = next(self._tickets)
        if client_id:
            previous = self._client_session.get(client_id)
            if previous:
                self.release(previous)
            self._latest_ticket[client_id] = ticket
        return ticket

    def abandon(self, ticket: int, client_id: str | None = None) -> None:
        """Forget an upload that ended without being committed."""
        if client_id and self._latest_ticket.get(client_id) == ticket:
            del self._latest_ticket[client_id]

    def is_current(self, ticket: int, client_id: str | None = None) -> bool:
        if not client_id:
            return True
        return self._latest_ticket.get(client_id) == ticket

    def commit(self, session: Session, ticket: int) -> bool:
        """
        Store a finished session.

        Returns False (and deletes the session's files) when a newer upload
        from the same client has started since ticket was issued.
        """
        client_id = session.client_id
        if not self.is_current(ticket, client_id):
            logger.info("[SESSION] %s superseded for client %s, discarding", session.session_id, client_id)
            self.discard(session.session_id)
            return False

        if client_id:
            previous = self._client_session.get(client_id)
            if previous and previous != session.session_id:
                self.release(previous)
            self._client_session[client_id] = session.session_id
            del self._latest_ticket[client_id]

        self._sessions[session.session_id] = session
        logger.info("[SESSION] %s stored (%s)", session.session_id, session.filename)

        while len(self._sessions) > self.max_sessions:
            oldest = next(iter(self._sessions))
            logger.info("[SESSION] evicting %s", oldest)
            self.release(oldest)
        return True

    def get(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def discard(self, session_id: str) -> None:
        """Delete files of a session that was never stored."""
        remove_session_dir(session_id)

    def release(self, session_id: str) -> bool:
        """Drop a session and delete its files. Returns False if it was unknown."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        if session.client_id and self._client_session.get(session.client_id) == session_id:
            del self._client_session[session.client_id]
        remove_session_dir(session_id)
        logger.info("[SESSION] %s released", session_id)
        return True

    def release_all(self) -> None:
        for session_id in list(self._sessions):
            self.release(session_id)
        self._latest_ticket.clear()
