"""Services Layer — the unit ledger and its store implementations.

Invariants:
    - Services orchestrate IO around pure core decisions
    - Stores implement core.repository_protocols.UnitStore structurally
"""
