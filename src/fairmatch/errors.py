class InvalidConfiguration(ValueError):
    """Bad team size, match count, roster entry or skill rating."""


class InsufficientPlayers(ValueError):
    """Roster is smaller than one match needs."""

    def __init__(self, required: int, available: int, detail: str = ""):
        self.required = required
        self.available = available
        message = f"Need at least {required} players{detail}, got {available}"
        super().__init__(message)


class DuplicateName(ValueError):
    """Two roster entries share a name (case-insensitive)."""
