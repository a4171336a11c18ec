from app.models.portal import (  # noqa: F401
    DomainAvailability,
    DomainStatus,
    InvoiceStatus,
    RegistrarLockStatus,
    ReplyAuthor,
    ServiceStatus,
    TicketPriority,
    TicketStatus,
)
