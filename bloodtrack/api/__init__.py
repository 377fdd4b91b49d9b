"""API Layer — operational probes only.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Ledger operations are a library surface, not exposed over HTTP
"""
