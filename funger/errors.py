class FungerError(Exception):
    """Base class for faults raised by the garden core."""


class StoreWriteFailed(FungerError):
    """The persistent store rejected a write. Retryable by the caller."""


class StoreConflict(FungerError):
    """A uniqueness constraint in the store was violated."""

    def __init__(self, table: str, key: str):
        super().__init__(f"Row '{key}' already exists in '{table}'.")
        self.table = table
        self.key = key


class DependencyUnavailable(FungerError):
    """An optional subsystem has not been provisioned."""

    def __init__(self, subsystem: str):
        super().__init__(f"Subsystem '{subsystem}' is not available.")
        self.subsystem = subsystem
