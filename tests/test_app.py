"""
Tests for Flask application factory and HTTP routes.
"""

import json
import chess
import pytest
from src.chessmatch.app import create_app
from src.chessmatch.game_server import GameServer


def test_create_app():
    """Test that the app factory creates a valid Flask app."""
    app, socketio = create_app()
    assert app is not None
    assert socketio is not None
    assert app.config['SECRET_KEY'] is not None
    assert app.config['NOTIFY_SPECTATORS_ON_LEAVE'] is False
    assert isinstance(app.extensions['game_server'], GameServer)


def test_create_app_config_override():
    app, socketio = create_app({'NOTIFY_SPECTATORS_ON_LEAVE': True, 'LOG_LEVEL': 'DEBUG'})
    assert app.config['NOTIFY_SPECTATORS_ON_LEAVE'] is True
    assert app.config['LOG_LEVEL'] == 'DEBUG'


def test_apps_do_not_share_state():
    """Test that each application gets its own GameServer."""
    app1, _ = create_app()
    app2, _ = create_app()
    assert app1.extensions['game_server'] is not app2.extensions['game_server']


def test_create_app_uses_given_game_server():
    game_server = GameServer()
    app, _ = create_app(game_server=game_server)
    assert app.extensions['game_server'] is game_server


@pytest.fixture
def app():
    """Create a test Flask application."""
    app, socketio = create_app({'TESTING': True})
    app.socketio = socketio
    return app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


class TestRoutes:
    """Test the HTTP status endpoints."""

    def test_index(self, client):
        response = client.get('/')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['data']['status'] == 'ok'

    def test_list_games_empty(self, client):
        response = client.get('/api/games')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['data']['games'] == []
        assert data['data']['total_count'] == 0
        assert data['data']['waiting'] is False

    def test_list_games_with_session(self, client, app):
        white = app.socketio.test_client(app)
        black = app.socketio.test_client(app)
        waiting = app.socketio.test_client(app)

        response = client.get('/api/games')
        data = json.loads(response.data)['data']
        assert data['total_count'] == 1
        assert data['waiting'] is True

        game = data['games'][0]
        assert game['session_id'] == '1'
        assert game['white'] != game['black']
        assert game['fen'] == chess.STARTING_FEN
        assert game['turn'] == 'w'
        assert game['spectators'] == 0

        for sio_client in (white, black, waiting):
            sio_client.disconnect()

    def test_get_game(self, client, app):
        white = app.socketio.test_client(app)
        black = app.socketio.test_client(app)
        white.emit('move', 'e2e4')

        response = client.get('/api/games/1')
        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['session_id'] == '1'
        assert data['turn'] == 'b'

        white.disconnect()
        black.disconnect()

    def test_get_nonexistent_game(self, client):
        response = client.get('/api/games/nonexistent')
        assert response.status_code == 404
        data = json.loads(response.data)
        assert data['success'] is False
