"""
WebSocket event handlers for real-time game communication.

This module turns Socket.IO events (connect, disconnect, move, spectate) into
GameServer operations and sends the resulting notifications to the players
and spectators involved.  Each event is handled to completion, emits
included, while holding the game server lock.
"""

from flask import request, current_app
from flask_socketio import emit
from loguru import logger

WAITING_MESSAGE = "Waiting for another player to connect..."
PAIRED_MESSAGES = {
    'w': "You have been paired with an opponent. You are playing as White.",
    'b': "You have been paired with an opponent. You are playing as Black.",
}
NO_GAME_MESSAGE = "No games available to spectate."


def init_socketio_handlers(socketio, game_server):
    """Initialize WebSocket event handlers against the given GameServer."""

    @socketio.on('connect')
    def handle_connect(auth=None):
        """Seat the new connection or pair it with the waiting player."""
        sid = request.sid
        logger.info(f"A user connected: {sid}")

        with game_server.lock:
            session = game_server.connect(sid)
            if session is None:
                if game_server.matchmaker.waiting == sid:
                    emit('waiting', WAITING_MESSAGE)
                return

            fen = game_server.rules.fen(session.position)
            for player, color in ((session.white, 'w'), (session.black, 'b')):
                socketio.emit('playerRole', color, to=player)
            for player, color in ((session.white, 'w'), (session.black, 'b')):
                socketio.emit('paired', PAIRED_MESSAGES[color], to=player)
            for player in session.players:
                socketio.emit('boardState', fen, to=player)

    @socketio.on('disconnect')
    def handle_disconnect(reason=None):
        """Drop the connection and tell the opponent if a game was torn down."""
        sid = request.sid
        logger.info(f"A user disconnected: {sid}")

        with game_server.lock:
            removal = game_server.disconnect(sid)
            if removal.kind != 'player':
                return

            socketio.emit('playerLeft', to=removal.opponent)
            if current_app.config.get('NOTIFY_SPECTATORS_ON_LEAVE'):
                for spectator in sorted(removal.session.spectators):
                    socketio.emit('playerLeft', to=spectator)

    @socketio.on('move')
    def handle_move(move=None):
        """Handle player move attempts."""
        sid = request.sid

        with game_server.lock:
            try:
                outcome = game_server.move(sid, move)
            except Exception:
                logger.exception(f"Move {move!r} from '{sid}' failed")
                emit('invalid:move', move)
                return

            if outcome.status == 'ignored':
                logger.debug(f"Dropping move from '{sid}': not in a game")
                return

            if outcome.status == 'resync':
                emit('boardState', game_server.rules.fen(outcome.session.position))
                return

            if outcome.status == 'rejected':
                logger.debug(f"Rejected move {move!r} from '{sid}': {outcome.reason}")
                emit('invalid:move', move)
                return

            fen = game_server.rules.fen(outcome.session.position)
            for recipient in outcome.recipients:
                socketio.emit('move', move, to=recipient)
            for recipient in outcome.recipients:
                socketio.emit('boardState', fen, to=recipient)

            if outcome.game_over is not None:
                for recipient in outcome.recipients:
                    socketio.emit('gameOver', outcome.game_over.message, to=recipient)

    @socketio.on('spectate')
    def handle_spectate(data=None):
        """Attach the requester to the most recent game."""
        sid = request.sid

        with game_server.lock:
            outcome = game_server.spectate(sid)
            if outcome.status == 'none':
                emit('noGame', NO_GAME_MESSAGE)
                return

            fen = game_server.rules.fen(outcome.session.position)
            if outcome.status == 'joined':
                emit('spectatorRole')
            emit('boardState', fen)
