"""Infrastructure — database session management and structured logging.

Invariants:
    - Single async engine per process (initialized via init_db)
    - setup_logging called once on startup
"""
