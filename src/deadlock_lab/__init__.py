"""deadlock-lab — deadlock-safety analysis for teaching operating systems.

Re-exports the data model so callers can write::

    from deadlock_lab import make_state, StateError
"""

from deadlock_lab.state import ResourceState, StateError, make_state

__all__ = ["ResourceState", "StateError", "make_state"]
