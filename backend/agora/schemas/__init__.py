"""Pydantic Schemas — request and result shapes the dispatcher speaks.

Invariants:
    - Requests validate at the system boundary, before any handler runs
    - Domain types from core/ used for enum fields

Design Decisions:
    - Separate from models: schemas are contracts, models are persistence
"""
