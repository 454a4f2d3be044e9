"""
dqlited: client-side operations for a leader-based replicated SQLite cluster.

- :mod:`dqlited.sql` splits SQL dumps into statements and transaction blocks
- :mod:`dqlited.execution` runs them with retry behind a circuit breaker
- :mod:`dqlited.cluster` finds the leader, administers membership and hands
  leadership off at shutdown
- :mod:`dqlited.api` and :mod:`dqlited.cli` are the HTTP and command-line
  front ends
"""

__version__ = "0.4.0"
