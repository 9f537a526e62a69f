"""
HTTP routes for the chess matchmaking server.

Games are played over Socket.IO; these endpoints only report on the
server's state.
"""

from flask import Blueprint, current_app, jsonify

bp = Blueprint('main', __name__)


@bp.route('/')
def index():
    """Health check."""
    return jsonify({
        'success': True,
        'data': {'service': 'chessmatch', 'status': 'ok'}
    }), 200


@bp.route('/api/games', methods=['GET'])
def get_all_games():
    """Get information about all active sessions on the server."""
    game_server = current_app.extensions['game_server']
    with game_server.lock:
        stats = game_server.stats()

    return jsonify({
        'success': True,
        'data': {
            'waiting': stats['waiting'],
            'games': stats['sessions'],
            'total_count': len(stats['sessions'])
        }
    }), 200


@bp.route('/api/games/<session_id>', methods=['GET'])
def get_game(session_id):
    """Get information about one active session."""
    game_server = current_app.extensions['game_server']
    with game_server.lock:
        try:
            session = game_server.registry.get(session_id)
        except KeyError:
            return jsonify({'success': False, 'error': 'Game not found'}), 404
        data = session.to_dict()

    return jsonify({'success': True, 'data': data}), 200
