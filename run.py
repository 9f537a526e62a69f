"""
Development server entry point.

Run this script to start the Flask development server with WebSocket support.
Host and port come from CHESSMATCH_HOST and CHESSMATCH_PORT.
"""

import os

from src.chessmatch.app import create_app

if __name__ == '__main__':
    app, socketio = create_app()
    host = os.environ.get('CHESSMATCH_HOST', '0.0.0.0')
    port = int(os.environ.get('CHESSMATCH_PORT', '3000'))
    socketio.run(app, debug=True, host=host, port=port)
