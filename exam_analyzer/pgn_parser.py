"""PGN import - turns a finished PGN game into a GameRecord."""
import hashlib
import io
from typing import Dict, List, Optional

import chess
import chess.pgn

from exam_analyzer.errors import MalformedGameRecord
from exam_analyzer.models import Color, GameRecord, RecordedMove
from exam_analyzer.scores import side_of

FINISHED_RESULTS = ("1-0", "0-1", "1/2-1/2")


def parse_time_control(value: Optional[str]) -> Optional[Dict[str, float]]:
    """"300+3" -> {"base": 300, "increment": 3}; None for "-" or missing."""
    if not value or value in ("-", "?"):
        return None
    base, _, increment = value.partition("+")
    try:
        return {"base": float(base), "increment": float(increment or 0)}
    except ValueError:
        return None


def parse_elo(value: Optional[str]) -> int:
    try:
        return int(value) if value else 0
    except ValueError:
        return 0


def _game_id(headers: chess.pgn.Headers, pgn: str) -> str:
    site = headers.get("Site", "")
    if site.startswith("http"):
        return site.rstrip("/").rsplit("/", 1)[-1]
    return "pgn-" + hashlib.sha1(pgn.encode("utf-8")).hexdigest()[:8]


def read_moves(game: chess.pgn.Game) -> List[RecordedMove]:
    """Replay the mainline; think time from [%clk] comments when present."""
    board = game.board()
    time_control = parse_time_control(game.headers.get("TimeControl"))
    increment = time_control["increment"] if time_control else 0.0
    last_clock = {
        chess.WHITE: time_control["base"] if time_control else None,
        chess.BLACK: time_control["base"] if time_control else None,
    }

    moves = []
    for node in game.mainline():
        mover = board.turn
        move_number = board.fullmove_number
        san = board.san(node.move)
        board.push(node.move)

        time_spent = 0.0
        clock = node.clock()
        if clock is not None:
            if last_clock[mover] is not None:
                time_spent = max(0.0, last_clock[mover] - clock + increment)
            last_clock[mover] = clock

        moves.append(RecordedMove(
            move_number=move_number,
            color=side_of(mover),
            san=san,
            uci=node.move.uci(),
            fen=board.fen(),
            time_spent=round(time_spent, 2),
        ))
    return moves


def game_record_from_pgn(
    pgn: str,
    player_color: Color = "white",
    game_id: Optional[str] = None,
    opponent: Optional[str] = None,
) -> GameRecord:
    """Build a GameRecord for `player_color` from a single-game PGN."""
    game = chess.pgn.read_game(io.StringIO(pgn))
    if game is None:
        raise MalformedGameRecord("No game found in PGN")
    if game.errors:
        raise MalformedGameRecord(f"Unreadable PGN: {game.errors[0]}")

    headers = game.headers
    result = headers.get("Result", "*")
    if result not in FINISHED_RESULTS:
        raise MalformedGameRecord(f"Game is not finished (result {result!r})")

    moves = read_moves(game)
    if not moves:
        raise MalformedGameRecord("PGN contains no moves")

    opponent_key = "Black" if player_color == "white" else "White"

    return GameRecord(
        game_id=game_id or _game_id(headers, pgn),
        player_color=player_color,
        opponent=opponent or headers.get(opponent_key, ""),
        opponent_elo=parse_elo(headers.get(f"{opponent_key}Elo")),
        result=result,
        termination=headers.get("Termination", ""),
        duration=sum(m.time_spent for m in moves),
        moves=moves,
        pgn=pgn.strip(),
        starting_fen=headers.get("FEN"),
    )
