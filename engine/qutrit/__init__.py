"""Qutrit Tic-Tac-Toe: probabilistic board engine, opponent AI and self-play training."""

__version__ = "0.1.0"
