"""
Flask application factory and main application entry point.

This module creates and configures the Flask application instance
with WebSocket support for real-time game communication.
"""

import sys

from flask import Flask
from flask_socketio import SocketIO
from flask_cors import CORS
from loguru import logger

from .game_server import GameServer


def create_app(config=None, game_server=None):
    """
    Create and configure the Flask application.
    
    Args:
        config: Configuration object or dictionary
        game_server: GameServer to serve; a fresh one is created if omitted
        
    Returns:
        Tuple of the Flask application and its SocketIO instance
    """
    app = Flask(__name__)
    
    # Default configuration
    app.config.update({
        'SECRET_KEY': 'dev-key-change-in-production',
        'DEBUG': True,
        'CORS_ORIGINS': '*',
        'NOTIFY_SPECTATORS_ON_LEAVE': False,
        'LOG_LEVEL': 'INFO',
    })
    
    if config:
        app.config.update(config)

    # Configure logging
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="{time} | {level} | {message}",
        level=app.config['LOG_LEVEL'],
        colorize=True
    )
    logger.info("Starting chess matchmaking server")
    
    # Enable CORS for all HTTP requests
    CORS(app, origins=app.config['CORS_ORIGINS'])
    
    # Initialize SocketIO for WebSocket support
    socketio = SocketIO(app, cors_allowed_origins=app.config['CORS_ORIGINS'])

    # One coordinator per application instance
    if game_server is None:
        game_server = GameServer()
    app.extensions['game_server'] = game_server
    
    from . import routes
    app.register_blueprint(routes.bp)
    
    # Initialize WebSocket handlers
    from . import websocket_handlers
    websocket_handlers.init_socketio_handlers(socketio, game_server)
    
    return app, socketio
