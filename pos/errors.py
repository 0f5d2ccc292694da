from typing import Dict, Optional


class PosError(Exception):
    """Base class for every failure the POS core reports to its caller."""


class ProductValidationError(PosError):
    """Product form rejected before any network call; ``errors`` maps field -> message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        fields = ", ".join(sorted(errors))
        super().__init__(f"invalid product fields: {fields}")


class PaymentValidationError(PosError):
    pass


class EmptyCartError(PosError):
    def __init__(self):
        super().__init__("empty cart")


class RemoteReadError(PosError):
    def __init__(self, what: str, cause: Exception):
        self.what = what
        self.cause = cause
        super().__init__(f"failed to load {what}: {cause}")


class RemoteWriteError(PosError):
    """A write against the backend failed; earlier writes of the same operation stay committed."""

    def __init__(self, operation: str, cause: Exception, step: Optional[int] = None):
        self.operation = operation
        self.cause = cause
        self.step = step
        super().__init__(f"{operation} failed: {cause}")
