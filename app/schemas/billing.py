from __future__ import annotations

from app.models.portal import InvoiceStatus
from app.schemas.common import EntityModel, PortalModel


class InvoiceItem(EntityModel):
    description: str
    amount: str


class Invoice(EntityModel):
    id: str
    account_id: str
    invoice_number: str
    date_created: str
    due_date: str
    total: str
    status: InvoiceStatus
    items: list[InvoiceItem] = []


class PaymentMethod(EntityModel):
    module: str
    display_name: str


class AddFundsRequest(PortalModel):
    amount: float | None = None
    payment_method: str | None = None


class AddFundsResult(PortalModel):
    message: str = "Invoice created successfully for adding funds."
    invoice_id: str
    payment_url: str


class InvoiceListResponse(PortalModel):
    invoices: list[Invoice]


class PaymentMethodListResponse(PortalModel):
    payment_methods: list[PaymentMethod]
