import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import chess
from loguru import logger

from .rules import ChessRules, GameOutcome, side_to_move


class Session(object):
    """One game between two connected players.

    The model here is:
    - white and black are connection ids and never change.
    - position is only ever replaced with a board returned by the rules
      engine after a successful move.
    - spectators is a set of connection ids watching the game.

    """
    def __init__(self, session_id: str, white: str, black: str, position: chess.Board):
        if white == black:
            raise RuntimeError(f"Session '{session_id}' cannot seat '{white}' on both sides")
        self.session_id = session_id
        self.white = white
        self.black = black
        self.position = position
        self.spectators: Set[str] = set()
        self.created_at = datetime.now(timezone.utc).isoformat()

    @property
    def players(self) -> List[str]:
        return [self.white, self.black]

    def has_player(self, sid: str) -> bool:
        return sid == self.white or sid == self.black

    def opponent_of(self, sid: str) -> str:
        """Return the other player's id.  Raises KeyError for non-players."""
        if sid == self.white:
            return self.black
        if sid == self.black:
            return self.white
        raise KeyError(f"'{sid}' is not a player in session '{self.session_id}'")

    def player_to_move(self) -> str:
        return self.white if side_to_move(self.position) == 'w' else self.black

    def participants(self) -> List[str]:
        """Broadcast recipients: white, black, then spectators in sorted order."""
        return self.players + sorted(self.spectators)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'white': self.white,
            'black': self.black,
            'fen': self.position.fen(),
            'turn': side_to_move(self.position),
            'spectators': len(self.spectators),
            'created_at': self.created_at,
        }


class Matchmaker(object):
    """Holds at most one waiting connection and pairs it with the next one."""

    def __init__(self, rules: ChessRules):
        self.rules = rules
        self._waiting: Optional[str] = None
        self._next_session_id = 1

    @property
    def waiting(self) -> Optional[str]:
        return self._waiting

    def on_connect(self, sid: str) -> Optional[Session]:
        """Seat sid as the waiting player, or pair it with the waiting one.

        Returns the new Session when a pairing happened, None otherwise.
        Registering the id that is already waiting is a no-op.

        """
        if self._waiting is None or self._waiting == sid:
            self._waiting = sid
            return None

        session_id = str(self._next_session_id)
        self._next_session_id += 1
        session = Session(session_id, white=self._waiting, black=sid,
                          position=self.rules.new_position())
        self._waiting = None
        return session

    def on_disconnect(self, sid: str) -> bool:
        """Clear the waiting slot if sid holds it.  Returns whether it did."""
        if self._waiting == sid:
            self._waiting = None
            return True
        return False


@dataclass
class Removal(object):
    """What removing a connection from the registry did.

    kind is 'player', 'spectator' or 'none'.  For 'player', session is the
    torn-down session and opponent the id of the player left behind.

    """
    kind: str
    session: Optional[Session] = None
    opponent: Optional[str] = None


class SessionRegistry(object):
    """Active sessions in creation order, indexed by connection id."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}  # session_id -> Session, insertion ordered
        self._by_player: Dict[str, Session] = {}
        self._by_spectator: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: Session):
        """Adds a session.  Raises RuntimeError if a player is already seated."""
        for sid in session.players:
            if sid in self._by_player:
                raise RuntimeError(f"Connection '{sid}' is already playing in another session")
        self._sessions[session.session_id] = session
        for sid in session.players:
            self._by_player[sid] = session

    def get(self, session_id: str) -> Session:
        if session_id not in self._sessions:
            raise KeyError(f"Session '{session_id}' does not exist")
        return self._sessions[session_id]

    def list_sessions(self) -> List[Session]:
        return list(self._sessions.values())

    def find_by_player(self, sid: str) -> Optional[Session]:
        return self._by_player.get(sid)

    def find_by_spectator(self, sid: str) -> Optional[Session]:
        return self._by_spectator.get(sid)

    def most_recent(self) -> Optional[Session]:
        if not self._sessions:
            return None
        return next(reversed(self._sessions.values()))

    def add_spectator(self, session: Session, sid: str):
        """Adds sid to the session's spectators.

        A connection watches at most one game, so it is first dropped from
        any other spectator set.  Raises RuntimeError for players and
        KeyError for sessions that are no longer registered.

        """
        if sid in self._by_player:
            raise RuntimeError(f"Connection '{sid}' is a player and cannot spectate")
        if self._sessions.get(session.session_id) is not session:
            raise KeyError(f"Session '{session.session_id}' does not exist")

        previous = self._by_spectator.get(sid)
        if previous is not None and previous is not session:
            previous.spectators.discard(sid)

        session.spectators.add(sid)
        self._by_spectator[sid] = session

    def remove_connection(self, sid: str) -> Removal:
        """Remove every trace of a connection.

        A player takes its whole session down with it; the spectators of that
        session are simply dropped from the index.

        """
        session = self._by_player.get(sid)
        if session is not None:
            del self._sessions[session.session_id]
            for player in session.players:
                self._by_player.pop(player, None)
            for spectator in session.spectators:
                if self._by_spectator.get(spectator) is session:
                    del self._by_spectator[spectator]
            return Removal('player', session=session, opponent=session.opponent_of(sid))

        session = self._by_spectator.pop(sid, None)
        if session is not None:
            session.spectators.discard(sid)
            return Removal('spectator', session=session)

        return Removal('none')


@dataclass
class MoveOutcome(object):
    """Result of GameServer.move.

    status is one of:
    - 'applied': the move was legal; session holds the new position
    - 'rejected': out of turn, illegal or malformed; reason says why
    - 'resync': the sender only spectates; session is the watched game
    - 'ignored': the sender is in no session at all

    """
    status: str
    session: Optional[Session] = None
    recipients: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    game_over: Optional[GameOutcome] = None


@dataclass
class SpectateOutcome(object):
    """Result of GameServer.spectate; status is 'joined', 'player' or 'none'."""
    status: str
    session: Optional[Session] = None


class GameServer(object):
    """Represents the game server state.

    The model here is:
    - A Matchmaker holds at most one waiting connection.
    - A SessionRegistry holds the running games.
    - Every connection is either unpaired, waiting, playing or spectating,
      which is derived from the two structures above.

    Flask-SocketIO may run handlers on several threads.  Every operation
    below runs under `lock`, and since it is reentrant the event handlers
    also hold it for the whole event, outbound emits included.

    """
    def __init__(self, rules: Optional[ChessRules] = None):
        """Initialize the GameServer with empty state."""
        self.rules = rules or ChessRules()
        self.matchmaker = Matchmaker(self.rules)
        self.registry = SessionRegistry()
        self.lock = threading.RLock()

    def connect(self, sid: str) -> Optional[Session]:
        """Handle a new connection.  Returns the new session if one was made."""
        with self.lock:
            if self.registry.find_by_player(sid) is not None:
                logger.warning(f"Connection '{sid}' is already playing, ignoring repeated connect")
                return None

            session = self.matchmaker.on_connect(sid)
            if session is not None:
                self.registry.add(session)
                logger.info(f"Session '{session.session_id}' created: white={session.white} black={session.black}")
            else:
                logger.info(f"Connection '{sid}' is waiting for an opponent")
            return session

    def disconnect(self, sid: str) -> Removal:
        """Forget a connection.

        The waiting slot is cleared first; after that the registry drops the
        connection as a player (tearing down its session) or as a spectator.

        """
        with self.lock:
            if self.matchmaker.on_disconnect(sid):
                logger.info(f"Waiting connection '{sid}' left")

            removal = self.registry.remove_connection(sid)
            if removal.kind == 'player':
                logger.info(f"Session '{removal.session.session_id}' ended: '{sid}' disconnected")
            return removal

    def move(self, sid: str, move: Any) -> MoveOutcome:
        """Apply a move from sid to its session, enforcing turn order."""
        with self.lock:
            session = self.registry.find_by_player(sid)
            if session is None:
                watched = self.registry.find_by_spectator(sid)
                if watched is not None:
                    return MoveOutcome('resync', session=watched)
                return MoveOutcome('ignored')

            if session.player_to_move() != sid:
                return MoveOutcome('rejected', session=session, reason="Not your turn")

            result = self.rules.apply_move(session.position, move)
            if not result.legal:
                return MoveOutcome('rejected', session=session, reason=result.reason)

            session.position = result.position
            if result.outcome is not None:
                logger.info(f"Session '{session.session_id}' finished: {result.outcome.message}")
            return MoveOutcome('applied', session=session, recipients=session.participants(),
                               game_over=result.outcome)

    def spectate(self, sid: str) -> SpectateOutcome:
        """Attach sid to the most recent session.

        A waiting connection gives up its place in the queue.  Players keep
        their own game and only get it back for a resync.

        """
        with self.lock:
            own = self.registry.find_by_player(sid)
            if own is not None:
                return SpectateOutcome('player', session=own)

            session = self.registry.most_recent()
            if session is None:
                return SpectateOutcome('none')

            if self.matchmaker.on_disconnect(sid):
                logger.info(f"Connection '{sid}' left the queue to spectate")
            self.registry.add_spectator(session, sid)
            logger.info(f"Connection '{sid}' is spectating session '{session.session_id}'")
            return SpectateOutcome('joined', session=session)

    def stats(self) -> Dict[str, Any]:
        """Summary used by the HTTP status route."""
        with self.lock:
            return {
                'waiting': self.matchmaker.waiting is not None,
                'sessions': [session.to_dict() for session in self.registry.list_sessions()],
            }
