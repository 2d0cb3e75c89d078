import threading
import time
from typing import Dict, Optional

from .codes import generate_game_code
from .errors import NotFoundError, PreconditionError
from .quizzes import QuizSnapshot
from .scheduler import TimerScheduler
from .session import GameSession, Player


class SessionRegistry:
    """Process-wide index of live game sessions.

    Sessions are reachable by game code, by admin sid and by player sid.
    Roster changes go through :meth:`join` and :meth:`leave` so the player
    index always matches the sessions' rosters.

    Lock order is session lock, then registry lock. Handlers call in here
    while holding a session lock, so no session method is ever called
    with ``_lock`` held.
    """

    def __init__(self, app=None):
        self._lock = threading.RLock()
        self._by_code: Dict[str, GameSession] = {}
        self._by_admin: Dict[str, str] = {}
        self._by_player: Dict[str, str] = {}
        self.scheduler = TimerScheduler()
        self.clock = time.time
        self.code_length = 6
        self.logger = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        with self._lock:
            stale = list(self._by_code.values())
            self._by_code.clear()
            self._by_admin.clear()
            self._by_player.clear()
        for session in stale:
            session.teardown()
        self.scheduler = TimerScheduler(app)
        self.clock = time.time
        self.code_length = int(app.config.get('GAME_CODE_LENGTH', 6))
        self.logger = app.logger
        app.extensions['quizzy_registry'] = self

    def __len__(self) -> int:
        return len(self._by_code)

    def create(self, quiz: QuizSnapshot, admin_sid: str) -> GameSession:
        """Create a session for ``admin_sid``, or return the one it already owns."""
        with self._lock:
            existing = self.get_by_admin(admin_sid)
            if existing is not None:
                return existing
            code = generate_game_code(self.code_length)
            while code in self._by_code:
                code = generate_game_code(self.code_length)
            session = GameSession(code, admin_sid, quiz, clock=self.clock)
            self._by_code[code] = session
            self._by_admin[admin_sid] = code
            self._log(f"[registry-add] code={code} quiz={quiz.quiz_id} admin={admin_sid}")
            return session

    def get(self, game_code: str) -> Optional[GameSession]:
        return self._by_code.get((game_code or '').upper())

    def require(self, game_code: str) -> GameSession:
        session = self.get(game_code)
        if session is None:
            raise NotFoundError()
        return session

    def get_by_admin(self, sid: str) -> Optional[GameSession]:
        with self._lock:
            code = self._by_admin.get(sid)
            return self._by_code.get(code) if code else None

    def get_by_player(self, sid: str) -> Optional[GameSession]:
        with self._lock:
            code = self._by_player.get(sid)
            session = self._by_code.get(code) if code else None
            if session is None or not session.has_player(sid):
                return None
            return session

    def join(self, game_code: str, sid: str, username: str) -> GameSession:
        with self._lock:
            session = self.require(game_code)
            if sid in self._by_admin:
                raise PreconditionError('Admins cannot join as players')
            if sid in self._by_player:
                raise PreconditionError('Already in a game')
            # Reserve the sid; get_by_player ignores it until the roster has it
            self._by_player[sid] = session.game_code
        try:
            session.add_player(sid, username)
        except Exception:
            with self._lock:
                if self._by_player.get(sid) == session.game_code:
                    del self._by_player[sid]
            raise
        return session

    def leave(self, sid: str) -> Optional[tuple]:
        """Remove a player from whichever session holds it.

        Returns ``(session, player)`` or None when the sid plays nowhere.
        """
        with self._lock:
            code = self._by_player.pop(sid, None)
            session = self._by_code.get(code) if code else None
        if session is None:
            return None
        player: Optional[Player] = session.remove_player(sid)
        if player is None:
            return None
        return session, player

    def remove(self, game_code: str) -> Optional[GameSession]:
        """Tear down a session's timer and drop it from every index."""
        with self._lock:
            session = self._by_code.pop((game_code or '').upper(), None)
            if session is None:
                return None
            if self._by_admin.get(session.admin_sid) == session.game_code:
                del self._by_admin[session.admin_sid]
            for sid in [s for s, c in self._by_player.items() if c == session.game_code]:
                del self._by_player[sid]
        session.teardown()
        self._log(f"[registry-remove] code={session.game_code}")
        return session

    def _log(self, message: str) -> None:
        if self.logger is not None:
            self.logger.info(message)
