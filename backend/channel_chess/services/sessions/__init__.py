"""Session domain services: escrow, lifecycle, moves and timeouts.

This package holds the settlement core that HTTP routes and socket handlers
call into. Functions take the caller identity explicitly, validate fully
before touching the session and raise SessionError subclasses on rejection;
committing (or rolling back) the database transaction is left to the caller.
"""
