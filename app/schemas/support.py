from __future__ import annotations

from app.models.portal import ReplyAuthor, TicketPriority, TicketStatus
from app.schemas.common import EntityModel, PortalModel


class TicketReply(EntityModel):
    id: str
    author: ReplyAuthor
    message: str
    date: str
    attachments: list[str] = []


class Ticket(EntityModel):
    id: str
    account_id: str
    ticket_number: str
    subject: str
    department: str
    status: TicketStatus
    priority: TicketPriority
    date_opened: str
    last_updated: str
    replies: list[TicketReply] = []


class Department(EntityModel):
    id: str
    name: str


class OpenTicketRequest(PortalModel):
    subject: str | None = None
    department: str | None = None
    message: str | None = None
    priority: str | None = None


class OpenTicketResult(PortalModel):
    message: str = "Ticket opened successfully."
    ticket_id: str
    ticket_number: str


class TicketReplyRequest(PortalModel):
    message: str | None = None


class TicketReplyResponse(PortalModel):
    message: str = "Reply posted successfully."
    reply: TicketReply


class TicketListResponse(PortalModel):
    tickets: list[Ticket]


class TicketResponse(PortalModel):
    ticket: Ticket


class DepartmentListResponse(PortalModel):
    departments: list[Department]
