#!/usr/bin/env python3
"""
Socket.IO console client for the chess matchmaking server.

Connecting puts you in the queue; the next player to connect is paired with
you.  You can also watch the most recent game instead.

Usage:
    python socketio_client.py http://localhost:3000

Commands:
    <move>     - Play a move in UCI (e2e4, e7e8q) or SAN (Nf3) notation
    !spectate  - Watch the most recent game (!s)
    !board     - Print the last known board (!b)
    !list      - List active games on the server (!l)
    !quit      - Disconnect and exit (!q)
"""

import sys
import queue
import threading
import time
from typing import Optional

import chess
import requests
import socketio


class ChessSocketIOClient:
    """Socket.IO client for the chess matchmaking server."""

    def __init__(self, server_url: str):
        self.server_url = server_url.rstrip('/')
        self.sio = socketio.Client()
        self.role: Optional[str] = None
        self.fen: Optional[str] = None
        self.running = False
        self.input_queue = queue.Queue()
        self.input_thread = None
        self.setup_socketio_handlers()

    def setup_socketio_handlers(self):
        """Set up Socket.IO event handlers."""

        @self.sio.on('waiting')
        def on_waiting(message):
            print(f"⏳ {message}")

        @self.sio.on('playerRole')
        def on_player_role(role):
            self.role = role
            print(f"♟️  You play {'White' if role == 'w' else 'Black'}")

        @self.sio.on('paired')
        def on_paired(message):
            print(f"✓ {message}")

        @self.sio.on('spectatorRole')
        def on_spectator_role(*args):
            self.role = 'spectator'
            print("👀 You are now spectating")

        @self.sio.on('boardState')
        def on_board_state(fen):
            self.fen = fen
            self.display_board()

        @self.sio.on('move')
        def on_move(move):
            print(f"➡️  Move played: {self._format_move(move)}")

        @self.sio.on('invalid:move')
        def on_invalid_move(move):
            print(f"✗ Invalid move: {self._format_move(move)}")

        @self.sio.on('playerLeft')
        def on_player_left(*args):
            print("📴 Your opponent left the game")

        @self.sio.on('gameOver')
        def on_game_over(message):
            print(f"🏁 {message}")

        @self.sio.on('noGame')
        def on_no_game(message):
            print(f"✗ {message}")

        @self.sio.on('disconnect')
        def on_disconnect(*args):
            print("🔌 Socket.IO disconnected")
            self.running = False

    def _format_move(self, move) -> str:
        if isinstance(move, dict):
            text = f"{move.get('from', '?')}-{move.get('to', '?')}"
            if move.get('promotion'):
                text += f"={move['promotion']}"
            return text
        return str(move)

    def display_board(self):
        """Print the last known position, from the player's side."""
        if not self.fen:
            print("No board yet")
            return

        board = chess.Board(self.fen)
        rows = str(board).splitlines()
        if self.role == 'b':
            rows = [row[::-1] for row in reversed(rows)]

        print("\n" + "="*30)
        print("\n".join(rows))
        print(f"{'White' if board.turn == chess.WHITE else 'Black'} to move")
        print("="*30)

    def list_games(self):
        """List active games on the server."""
        try:
            response = requests.get(f"{self.server_url}/api/games")
            result = response.json()
        except Exception as e:
            print(f"✗ List games error: {e}")
            return

        if response.status_code != 200 or not result.get('success'):
            print(f"✗ Failed to list games: {result.get('error', 'Unknown error')}")
            return

        games = result['data']['games']
        if not games:
            print("No games on server")
            return

        for game in games:
            print(f"Game {game['session_id']}: {game['white']} vs {game['black']}, "
                  f"{game['turn']} to move, {game['spectators']} watching")

    def _input_thread_func(self):
        """Thread function to handle non-blocking input."""
        while self.running:
            try:
                line = input()
            except (EOFError, KeyboardInterrupt):
                self.input_queue.put('!quit')
                break
            self.input_queue.put(line.strip())

    def run(self):
        """Connect and process commands until the user quits."""
        try:
            self.sio.connect(self.server_url)
        except Exception as e:
            print(f"✗ Socket.IO connection failed: {e}")
            return False

        self.running = True
        self.input_thread = threading.Thread(target=self._input_thread_func, daemon=True)
        self.input_thread.start()

        try:
            while self.running and self.sio.connected:
                try:
                    command = self.input_queue.get(timeout=0.1)
                except queue.Empty:
                    continue

                if not command:
                    continue

                if command.startswith('!'):
                    action = command[1:].lower()
                    if action in ['quit', 'q']:
                        break
                    elif action in ['spectate', 's']:
                        self.sio.emit('spectate')
                    elif action in ['board', 'b']:
                        self.display_board()
                    elif action in ['list', 'l']:
                        self.list_games()
                    else:
                        print(f"Unknown action: !{action}")
                        print("Available actions: !spectate/!s, !board/!b, !list/!l, !quit/!q")
                else:
                    self.sio.emit('move', command)
        except KeyboardInterrupt:
            print("\n👋 Exiting...")
        finally:
            self.running = False
            if self.sio.connected:
                self.sio.disconnect()
            # Give the disconnect a moment to reach the server
            time.sleep(0.1)
        return True


def main():
    """Main function."""
    if len(sys.argv) != 2:
        print("Usage: python socketio_client.py SERVER_URL")
        print("Example: python socketio_client.py http://localhost:3000")
        sys.exit(1)

    client = ChessSocketIOClient(sys.argv[1])
    print(f"Connecting to server at {sys.argv[1]}")
    if not client.run():
        sys.exit(1)


if __name__ == "__main__":
    main()
