"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - State machines take loaded entities plus an explicit `now` and return
      the next entity; callers decide when to persist

Design Decisions:
    - Functional core separated from imperative shell: every rule is testable
      without a repository or an event loop
"""
