"""Durable task state: atomic state, checkpoints and the audit trail."""

__all__: list[str] = []
