"""Domain errors for the trip planner.

Extraction misses, gateway failures and zero-score rankings are outcomes,
not errors; nothing here is raised for them.
"""


class PlannerError(Exception):
    """Base class for planner errors."""


class ProfileInvariantError(PlannerError):
    """A trip profile broke its append-only contract.

    Raised when a filled slot would be overwritten or unset, or a slot is
    filled with an invalid value. Aborts the turn.
    """


class SessionBusyError(PlannerError):
    """A turn arrived while the previous one for the session was still composing."""


class SessionNotFoundError(PlannerError):
    pass


class CatalogError(PlannerError):
    """Catalog file missing or unreadable."""


class PhrasingError(PlannerError):
    """Phrasing gateway returned nothing usable (non-2xx, timeout, bad body)."""


class CircuitOpenError(PlannerError):
    """Call skipped because the circuit breaker is open."""
