"""Services Layer — request handlers and the request dispatcher.

Invariants:
    - Handlers split by component (content, voting, membership, moderation,
      conversations, auth), one class each
    - Request dispatch uses an explicit registry (no auto-discovery)

Design Decisions:
    - Handlers load through the Repository, call pure core functions, then save:
      the async shell wraps the synchronous core
"""
