"""Compute-agent orchestration.

Sub-modules:
- ``client`` — assistants-style run API (create, poll, submit outputs, cancel)
- ``tools``  — named tool-handler registry resolving the agent's tool calls
- ``driver`` — the run state machine tying the two together
"""
