"""Chess rules adapter used by the game server.

The server never implements chess rules itself.  Every position change goes
through ChessRules.apply_move, which wraps the python-chess library and
reports the result as a MoveResult instead of raising.

"""
from dataclasses import dataclass
from typing import Any, Optional

import chess


# Draw terminations that python-chess reports without a claim
DRAW_REASONS = {
    chess.Termination.STALEMATE: "Stalemate",
    chess.Termination.INSUFFICIENT_MATERIAL: "Draw by insufficient material",
    chess.Termination.SEVENTYFIVE_MOVES: "Draw by the seventy-five-move rule",
    chess.Termination.FIVEFOLD_REPETITION: "Draw by fivefold repetition",
}

PROMOTION_PIECES = {
    'q': chess.QUEEN,
    'r': chess.ROOK,
    'b': chess.BISHOP,
    'n': chess.KNIGHT,
}


def side_to_move(position: chess.Board) -> str:
    """Return 'w' or 'b' for the side to move."""
    return 'w' if position.turn == chess.WHITE else 'b'


@dataclass
class GameOutcome(object):
    """Result of a finished game.

    Attributes
    ----------
    termination : str
        Lower-case name of the python-chess termination, e.g. 'checkmate'
    winner : Optional[str]
        'w' or 'b' for a decisive result, None for a draw
    message : str
        Human-readable result sent to the players
    """
    termination: str
    winner: Optional[str]
    message: str


@dataclass
class MoveResult(object):
    """Answer of the rules engine for one proposed move.

    Attributes
    ----------
    legal : bool
        Whether the move was accepted
    position : chess.Board
        The position after the move.  When the move is rejected this is the
        unchanged input position.
    reason : Optional[str]
        Why the move was rejected, None when it was accepted
    outcome : Optional[GameOutcome]
        Set when the resulting position is terminal
    """
    legal: bool
    position: chess.Board
    reason: Optional[str] = None
    outcome: Optional[GameOutcome] = None


class ChessRules(object):
    """Stateless facade over python-chess.

    Positions are chess.Board objects.  apply_move never mutates the board it
    is given; it works on a copy, so a failed attempt cannot leave a session
    position half-updated.

    """

    def new_position(self) -> chess.Board:
        """Return a board in the standard starting position."""
        return chess.Board()

    def fen(self, position: chess.Board) -> str:
        return position.fen()

    def turn(self, position: chess.Board) -> str:
        """Return 'w' or 'b' for the side to move."""
        return side_to_move(position)

    def apply_move(self, position: chess.Board, move: Any) -> MoveResult:
        """Apply a move descriptor to a position.

        Parameters
        ----------
        position : chess.Board
            Current position.  Left untouched.
        move : Any
            Either a mapping with 'from', 'to' and optional 'promotion' keys,
            or a UCI ('e2e4') or SAN ('Nf3') string.

        Returns
        -------
        MoveResult
            legal=False with a reason for malformed or illegal moves.
        """
        try:
            parsed = self.parse_move(position, move)
        except ValueError as e:
            return MoveResult(legal=False, position=position, reason=str(e))

        if not parsed or not position.is_legal(parsed):
            return MoveResult(legal=False, position=position,
                              reason=f"Illegal move {parsed.uci() if parsed else move!r}")

        new_position = position.copy()
        new_position.push(parsed)
        return MoveResult(legal=True, position=new_position,
                          outcome=self.outcome(new_position))

    def parse_move(self, position: chess.Board, move: Any) -> chess.Move:
        """Turn a move descriptor into a chess.Move.

        Raises ValueError if the descriptor can't be parsed.  The returned
        move is not checked for legality.

        """
        if isinstance(move, dict):
            return self._parse_move_object(position, move)

        if isinstance(move, str):
            text = move.strip()
            try:
                return chess.Move.from_uci(text)
            except ValueError:
                pass
            # parse_san also checks legality
            return position.parse_san(text)

        raise ValueError(f"Unsupported move descriptor {move!r}")

    def _parse_move_object(self, position: chess.Board, move: dict) -> chess.Move:
        """Build a chess.Move from a {'from', 'to', 'promotion'} mapping.

        Browser clients send a promotion piece with every move, so it is only
        attached when a pawn reaches the last rank.

        """
        source = move.get('from')
        target = move.get('to')
        if not isinstance(source, str) or not isinstance(target, str):
            raise ValueError("Move needs 'from' and 'to' squares")

        promotion = move.get('promotion')
        promotion_piece = None
        if promotion:
            if not isinstance(promotion, str) or promotion.lower() not in PROMOTION_PIECES:
                raise ValueError(f"Unknown promotion piece {promotion!r}")
            promotion_piece = PROMOTION_PIECES[promotion.lower()]

        try:
            from_square = chess.parse_square(source.lower())
            to_square = chess.parse_square(target.lower())
        except ValueError:
            raise ValueError(f"Unknown square in move {source!r}-{target!r}")

        reaches_last_rank = (position.piece_type_at(from_square) == chess.PAWN
                             and chess.square_rank(to_square) in (0, 7))
        if not reaches_last_rank:
            promotion_piece = None

        return chess.Move(from_square, to_square, promotion=promotion_piece)

    def outcome(self, position: chess.Board) -> Optional[GameOutcome]:
        """Return the GameOutcome for a terminal position, else None.

        The winner of a checkmate is the side that is not to move.

        """
        result = position.outcome()
        if result is None:
            return None

        termination = result.termination.name.lower()
        if result.termination == chess.Termination.CHECKMATE:
            winner = 'w' if result.winner == chess.WHITE else 'b'
            side = "White" if winner == 'w' else "Black"
            return GameOutcome(termination, winner, f"Checkmate! {side} wins.")

        if result.winner is None:
            reason = DRAW_REASONS.get(result.termination, "Draw")
            return GameOutcome(termination, None, f"{reason}! The game is a draw.")

        # Variant terminations never occur on a standard board
        winner = 'w' if result.winner == chess.WHITE else 'b'
        side = "White" if winner == 'w' else "Black"
        return GameOutcome(termination, winner, f"{side} wins.")
