#!/usr/bin/env python3
# ruff: noqa: E402
from __future__ import annotations

import argparse
import time
import os
import sys

# Allow running this script directly via `python scripts/perft.py`
# by adding the repo root (which contains `src/`) to sys.path.
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from src.engine.board import Board, Color, STARTPOS_ROWS
from src.engine.game import GameEngine
from src.engine.perft import perft


def main() -> None:
    parser = argparse.ArgumentParser(description="Count move-generator leaf nodes to a given depth")
    parser.add_argument(
        "--rows",
        type=str,
        default="/".join(STARTPOS_ROWS),
        help="Board diagram, eight '/'-separated rows from rank 8 ('.' empty; default: startpos)",
    )
    parser.add_argument("--black", action="store_true", help="Black to move")
    parser.add_argument("--castling", type=str, default="KQkq", help="Castling rights held")
    parser.add_argument("--depth", type=int, default=3, help="Perft depth (default: 3)")
    args = parser.parse_args()

    board = Board.from_rows(
        args.rows.split("/"),
        side_to_move=Color.BLACK if args.black else Color.WHITE,
        castling=args.castling,
    )
    engine = GameEngine.from_board(board)
    start = time.perf_counter()
    nodes = perft(engine, args.depth)
    dt = time.perf_counter() - start
    print(f"nodes={nodes} depth={args.depth} time_ms={int(dt*1000)} nps={int(nodes/max(dt,1e-9))}")


if __name__ == "__main__":
    main()
