"""Core pipeline: persistence, state machine, orchestration and errors."""
