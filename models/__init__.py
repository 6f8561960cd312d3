"""ORM models exposed by the LoanDesk data layer."""
from .outbound_message import OutboundMessage
from .pending_op import PendingOp
from .record import Record

__all__ = ["OutboundMessage", "PendingOp", "Record"]
