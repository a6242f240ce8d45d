"""Post-game analysis and metrics for exam-mode chess games."""
