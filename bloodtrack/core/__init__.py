"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Lifecycle decisions are pure functions of a snapshot and a timestamp

Design Decisions:
    - Functional core separated from imperative shell: services read a snapshot,
      ask core for a decision, then perform the conditional write
"""
