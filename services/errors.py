"""Failure types raised inside components and returned as values at their edges."""
from __future__ import annotations


class LoanDeskError(Exception):
    """Base class for data-layer failures."""


class NetworkFailure(LoanDeskError):
    """Remote store unreachable or rejected the request."""


class LocalStoreFailure(LoanDeskError):
    """Local durable store could not complete an operation."""


class ValidationFailure(LoanDeskError):
    """Input rejected before it was queued."""


class DeliveryFailure(LoanDeskError):
    """Delivery gateway refused a message; ``send`` reports it as a rejected result."""


__all__ = [
    "DeliveryFailure",
    "LoanDeskError",
    "LocalStoreFailure",
    "NetworkFailure",
    "ValidationFailure",
]
