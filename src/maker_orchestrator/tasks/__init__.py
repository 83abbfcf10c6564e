"""Reference task domains.

Small, fully deterministic domains used to exercise the orchestrator end to end
and to benchmark reliability against simulated oracles.
"""
