"""HTTP service for the Qutrit Tic-Tac-Toe engine."""
