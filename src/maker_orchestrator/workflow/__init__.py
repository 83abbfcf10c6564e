"""Per-step workflow components.

This package holds the pieces a single step flows through:
- step contracts issued by a decomposer
- the attempt executor (concurrent, isolated oracle calls)
- red-flag validation and k-voting
- the escalation state machine
- the action dispatch table used to apply a winning action

None of them keeps memory across steps.
"""

__all__: list[str] = []
