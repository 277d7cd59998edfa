#!/usr/bin/env python3
"""
Terminal-based Qutrit Tic-Tac-Toe client.

Play against the AI, against a friend on the same terminal, or watch
AI vs AI games. Every game ends with a collapse of the board.
"""

from __future__ import annotations
import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from qutrit.core.cells import X, O, DRAW, EPSILON, sq_to_label
from qutrit.core.collapse import collapse
from qutrit.core.errors import RuleViolation
from qutrit.core.moves import apply_move, valid_move_targets
from qutrit.core.notation import (
    format_board, format_classical_board, move_to_notation, notation_to_move
)
from qutrit.core.outcomes import outcome_summary, top_outcomes
from qutrit.core.state import GameSession, PLAYING, READY_TO_COLLAPSE, PVA, PVP
from qutrit.ai.player import AIConfig, HeuristicStrategy


def print_board(session: GameSession) -> None:
    """Print the probability grid.

    Each cell shows pX/pO, or the mark once the cell is certain.
    """
    print()
    print(format_board(session))
    print(f"Move {session.moves_played}/{session.total_moves}, {session.current_player} to play")
    print()


def show_valid_moves(session: GameSession) -> None:
    """List the cells that still have empty probability."""
    targets = valid_move_targets(session)
    if not targets:
        print("No valid targets!")
        return
    classical = [sq_to_label(t.index, session.side) for t in targets if t.p_empty >= 1.0 - EPSILON]
    partial = [f"{sq_to_label(t.index, session.side)} ({t.p_empty:.2f})"
               for t in targets if t.p_empty < 1.0 - EPSILON]
    if classical:
        print("Classical or split:", ", ".join(classical))
    if partial:
        print("Split only:", ", ".join(partial))


def show_outcomes(session: GameSession, k: int) -> None:
    """Print the k most probable classical outcomes and their verdict mass."""
    outcomes = top_outcomes(session, k)
    summary = outcome_summary(outcomes)
    print(f"Top {len(outcomes)} outcomes (covering {summary['covered'] * 100:.1f}%):")
    for outcome in outcomes[:5]:
        print(f"  {outcome.probability * 100:6.2f}%  {' '.join('.' if s == 'empty' else s for s in outcome.board)}"
              f"  -> {outcome.winner}")
    print(f"  X {summary[X] * 100:.1f}%  O {summary[O] * 100:.1f}%  draw {summary[DRAW] * 100:.1f}%")


def finish_game(session: GameSession, rng: np.random.Generator, human_player: str | None = None) -> GameSession:
    """Collapse a completed game and announce the result."""
    if session.phase != READY_TO_COLLAPSE:
        return session

    print("Board full. Collapsing...")
    session = collapse(session, rng)
    print()
    print(format_classical_board(session.collapsed_board, session.side))
    print()

    if session.winner == DRAW:
        print("Game drawn.")
    elif human_player is None:
        print(f"{session.winner} wins!")
    elif session.winner == human_player:
        print("Congratulations! You win!")
    else:
        print("AI wins. Better luck next time!")
    return session


def read_move(session: GameSession, outcomes_k: int):
    """Prompt until the player enters a legal move. Returns None to quit."""
    while True:
        try:
            user_input = input("> ").strip().lower()
        except EOFError:
            return None

        if user_input in ['q', 'quit', 'exit']:
            return None
        if user_input in ['h', 'help', '?']:
            print("Classical: a cell label like 'b2'")
            print("Split: label:amount pairs like 'a1:0.5,c3:0.5' (amounts sum to 1)")
            print("'m' valid targets, 'o' outcome forecast, 'q' quit")
            continue
        if user_input in ['m', 'moves']:
            show_valid_moves(session)
            continue
        if user_input in ['o', 'outcomes']:
            show_outcomes(session, outcomes_k)
            continue

        try:
            move = notation_to_move(user_input, session.current_player, session.side)
            return move, apply_move(session, move)
        except RuleViolation as e:
            print(f"Illegal move: {e}")
        except ValueError as e:
            print(f"Invalid format: {e}")


def play_game(
    size: int = 3,
    human_player: str | None = X,
    config: AIConfig | None = None,
    rng: np.random.Generator | None = None,
    outcomes_k: int = 16
) -> GameSession:
    """Play a game: human vs AI, or human vs human when human_player is None."""
    rng = rng if rng is not None else np.random.default_rng()
    if human_player is None:
        session = GameSession.new_game(side=size, game_mode=PVP)
    else:
        session = GameSession.new_game(side=size, game_mode=PVA, ai_player=O if human_player == X else X)
    ai = HeuristicStrategy(config, rng)

    print(f"\n=== Qutrit Tic-Tac-Toe {size}x{size} ===")
    if human_player is not None:
        print("You are", human_player)
    print("Commands: move (e.g. 'b2' or 'a1:0.5,c3:0.5'), 'm' targets, 'o' outcomes, 'q' quit")

    while session.phase == PLAYING:
        print_board(session)

        if human_player is None or session.current_player == human_player:
            result = read_move(session, outcomes_k)
            if result is None:
                print("Thanks for playing!")
                return session
            move, session = result
            print(f"{move.player} played: {move_to_notation(move, session.side)}")
        else:
            print("AI thinking...")
            move = ai.choose_move(session)
            if move is None:
                print("AI has no move.")
                return session
            session = apply_move(session, move)
            print(f"AI plays: {move_to_notation(move, session.side)}")

    print_board(session)
    show_outcomes(session, outcomes_k)
    return finish_game(session, rng, human_player)


def watch_ai_vs_ai(
    size: int = 3,
    config: AIConfig | None = None,
    rng: np.random.Generator | None = None,
    outcomes_k: int = 16,
    delay: float = 0.5
) -> GameSession:
    """Watch AI play against itself."""
    rng = rng if rng is not None else np.random.default_rng()
    session = GameSession.new_game(side=size)
    ai = HeuristicStrategy(config, rng)

    print(f"\n=== AI vs AI ({size}x{size}) ===")

    while session.phase == PLAYING:
        print_board(session)
        move = ai.choose_move(session)
        if move is None:
            break
        session = apply_move(session, move)
        print(f"{move.player} plays: {move_to_notation(move, session.side)}")
        time.sleep(delay)

    print_board(session)
    show_outcomes(session, outcomes_k)
    return finish_game(session, rng)


def main():
    parser = argparse.ArgumentParser(description='Qutrit Tic-Tac-Toe Terminal Client')
    parser.add_argument('--size', type=int, choices=[2, 3, 4], default=3, help='Board side length')
    parser.add_argument('--play-as', type=str, choices=[X, O], default=X, help='Play as X or O')
    parser.add_argument('--pvp', action='store_true', help='Two humans on one terminal')
    parser.add_argument('--watch', action='store_true', help='Watch AI vs AI')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for the AI and collapse')
    parser.add_argument('--outcomes', type=int, default=16, help='Outcomes to forecast')
    parser.add_argument('--exploration', type=float, default=0.1, help='AI exploration rate')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    rng = np.random.default_rng(args.seed)
    config = AIConfig(exploration_rate=args.exploration)

    if args.watch:
        watch_ai_vs_ai(args.size, config, rng, args.outcomes)
    elif args.pvp:
        play_game(args.size, None, config, rng, args.outcomes)
    else:
        play_game(args.size, args.play_as, config, rng, args.outcomes)


if __name__ == '__main__':
    main()
