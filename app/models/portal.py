import enum


class ServiceStatus(enum.Enum):
    active = "Active"
    suspended = "Suspended"
    terminated = "Terminated"
    pending = "Pending"
    cancelled = "Cancelled"
    fraud = "Fraud"
    completed = "Completed"


class DomainStatus(enum.Enum):
    active = "Active"
    pending = "Pending"
    expired = "Expired"
    transferred_away = "Transferred Away"
    grace = "Grace"
    redemption = "Redemption"
    pending_transfer = "Pending Transfer"
    cancelled = "Cancelled"
    fraud = "Fraud"


class InvoiceStatus(enum.Enum):
    paid = "Paid"
    unpaid = "Unpaid"
    cancelled = "Cancelled"
    overdue = "Overdue"
    refunded = "Refunded"
    collections = "Collections"


class TicketStatus(enum.Enum):
    open = "Open"
    answered = "Answered"
    customer_reply = "Customer-Reply"
    in_progress = "In Progress"
    on_hold = "On Hold"
    closed = "Closed"


class TicketPriority(enum.Enum):
    low = "Low"
    medium = "Medium"
    high = "High"


class ReplyAuthor(enum.Enum):
    client = "Client"
    support_staff = "Support Staff"


class DomainAvailability(enum.Enum):
    available = "available"
    unavailable = "unavailable"


class RegistrarLockStatus(enum.Enum):
    locked = "Locked"
    unlocked = "Unlocked"


ACTIVE_TICKET_STATUSES = (
    TicketStatus.open,
    TicketStatus.answered,
    TicketStatus.customer_reply,
)
OUTSTANDING_INVOICE_STATUSES = (InvoiceStatus.unpaid, InvoiceStatus.overdue)
