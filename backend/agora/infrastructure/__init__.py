"""Infrastructure Layer — repository adapters, notification sink, logging.

Invariants:
    - Adapters implement the Protocols in core/repository_protocols.py
    - Every storage failure is mapped to DependencyFailureError
"""
