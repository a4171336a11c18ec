"""Billing proxy: the portal's operations over the WHMCS API.

Each operation validates its arguments before touching the billing system,
issues the WHMCS actions it needs and hands the raw payloads to
:mod:`app.services.shaping`. Account-scoped lookups always carry the account
id as a filter; when that finds nothing an unscoped probe decides between
NotFound (no such record) and AccessDenied (owned by someone else).

WHMCS errors surface as :class:`~app.errors.DownstreamFailure`, except for
"not found" answers (NotFound) and the documented login and registration
mappings. Nothing here retries: fund additions and orders must never be
duplicated.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from datetime import datetime

from app.config import settings
from app.errors import (
    AccessDenied,
    Conflict,
    DownstreamFailure,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from app.models.portal import (
    InvoiceStatus,
    ReplyAuthor,
    TicketPriority,
    TicketStatus,
)
from app.schemas.account import (
    Account,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
)
from app.schemas.billing import AddFundsResult, Invoice, PaymentMethod
from app.schemas.domains import (
    Domain,
    DomainCheckResult,
    DomainConfiguration,
    DomainOrderResult,
    LockUpdateResponse,
)
from app.schemas.hosting import Product, ProductGroupListing, Service
from app.schemas.support import (
    Department,
    OpenTicketRequest,
    OpenTicketResult,
    Ticket,
    TicketReply,
)
from app.services import shaping
from app.services.auth_tokens import issue_session_token
from app.services.common import coerce_id, validate_enum
from app.services.whmcs import BillingBackend, WhmcsError

logger = logging.getLogger(__name__)

DOMAIN_NAME_RE = re.compile(r"^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_NAMESERVERS = 2
MAX_NAMESERVERS = 5
MAX_REGISTRATION_YEARS = 10
# Domains enriched at once; each takes two registrar lookups
DOMAIN_LOOKUP_CONCURRENCY = 5

GROUPS_SOURCE_PRIMARY = "GetProductGroups"
GROUPS_SOURCE_DERIVED = "DerivedFromGetProducts"

_INVALID_LOGIN_MARKERS = ("email or password invalid", "invalid login")
# WHMCS messages that are worth showing to the customer verbatim
_SAFE_MESSAGE_PREFIXES = ("Invalid Payment Method", "No items added to cart")


def invoice_url(invoice_id: str) -> str:
    return f"{settings.whmcs_app_url}/viewinvoice.php?id={invoice_id}"


def cart_url(product_id: str) -> str:
    return f"{settings.whmcs_app_url}/cart.php?a=add&pid={product_id}"


def _downstream(exc: WhmcsError) -> DownstreamFailure:
    safe = exc.message.startswith(_SAFE_MESSAGE_PREFIXES)
    return DownstreamFailure(exc.message, details={"action": exc.action}, safe=safe)


async def _call(backend: BillingBackend, action: str, **params) -> dict:
    try:
        return await backend.call(action, **params)
    except WhmcsError as exc:
        logger.error("WHMCS %s failed: %s", action, exc.message)
        if "not found" in exc.message.lower():
            raise NotFound(exc.message) from exc
        raise _downstream(exc) from exc


def _require_text(value: str | None, message: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationFailed(message)
    return text


class Accounts:
    @staticmethod
    async def authenticate(
        backend: BillingBackend, email: str | None, password: str | None
    ) -> LoginResponse:
        """Check credentials against WHMCS and issue a session credential.

        Any credential mismatch yields the same generic message, so callers
        cannot tell whether the e-mail or the password was wrong.
        """
        if not email or not password:
            raise ValidationFailed("Email and password are required.")
        try:
            payload = await backend.call("ValidateLogin", email=email.strip(), password2=password)
        except WhmcsError as exc:
            if exc.message.lower().startswith(_INVALID_LOGIN_MARKERS):
                logger.info("Rejected login attempt")
                raise Unauthorized("Invalid credentials. Please try again.") from exc
            raise _downstream(exc) from exc
        account_id = coerce_id(payload.get("userid"))
        if not account_id:
            raise DownstreamFailure("ValidateLogin returned no user id")
        account = await Accounts.get(backend, account_id)
        return LoginResponse(user=account, token=issue_session_token(account_id))

    @staticmethod
    async def register(backend: BillingBackend, payload: RegisterRequest) -> RegisterResponse:
        if not (payload.email and payload.first_name and payload.last_name and payload.password):
            raise ValidationFailed("Missing required registration fields")
        if len(payload.password) < settings.password_min_length:
            raise ValidationFailed(
                f"Password must be at least {settings.password_min_length} characters long"
            )
        try:
            result = await backend.call(
                "AddClient",
                firstname=payload.first_name,
                lastname=payload.last_name,
                email=payload.email.strip(),
                password2=payload.password,
                companyname=payload.company_name,
                address1=payload.address1,
                city=payload.city,
                state=payload.state,
                postcode=payload.postcode,
                country=payload.country,
                phonenumber=payload.phone_number,
                skipvalidation=True,
            )
        except WhmcsError as exc:
            if "already exists" in exc.message.lower():
                raise Conflict("An account with this email address already exists.") from exc
            raise _downstream(exc) from exc
        client_id = coerce_id(result.get("clientid"))
        if not client_id:
            raise DownstreamFailure("AddClient returned no client id")
        logger.info("Registered client %s", client_id)
        return RegisterResponse(user_id=client_id)

    @staticmethod
    async def get(backend: BillingBackend, account_id: str) -> Account:
        payload = await _call(backend, "GetClientsDetails", clientid=account_id, stats=False)
        return shaping.shape_account(payload)

    @staticmethod
    async def resend_verification(backend: BillingBackend, account_id: str) -> None:
        await _call(backend, "ResendVerificationEmail", id=account_id)


class Services:
    @staticmethod
    async def list(backend: BillingBackend, account_id: str) -> list[Service]:
        payload = await _call(backend, "GetClientsProducts", clientid=account_id)
        return [shaping.shape_service(row) for row in shaping.rows(payload, "products", "product")]

    @staticmethod
    async def _owned_row(backend: BillingBackend, account_id: str, service_id: str) -> dict:
        payload = await _call(
            backend, "GetClientsProducts", clientid=account_id, serviceid=service_id
        )
        found = shaping.rows(payload, "products", "product")
        if found:
            return found[0]
        probe = await _call(backend, "GetClientsProducts", serviceid=service_id)
        if shaping.rows(probe, "products", "product"):
            raise AccessDenied("Service belongs to another account.")
        raise NotFound("Service not found.")

    @staticmethod
    async def get(backend: BillingBackend, account_id: str, service_id: str) -> Service:
        """Service detail with usage figures and, when available, an SSO link."""
        row = await Services._owned_row(backend, account_id, service_id)
        link = None
        try:
            sso = await backend.call(
                "CreateSsoToken", client_id=account_id, service_id=row.get("id")
            )
            link = sso.get("redirect_url") or None
        except WhmcsError as exc:
            logger.warning("SSO token creation failed for service %s: %s", row.get("id"), exc)
        return shaping.shape_service(row, with_usage=True, control_panel_link=link)


class Domains:
    @staticmethod
    async def _enrich(backend: BillingBackend, row: dict) -> Domain:
        domain_id = row.get("id")
        ns_payload, lock_payload = await asyncio.gather(
            _call(backend, "DomainGetNameservers", domainid=domain_id),
            _call(backend, "DomainGetLockingStatus", domainid=domain_id),
        )
        return shaping.shape_domain(
            row,
            shaping.nameservers_from(ns_payload),
            shaping.lock_state_from(lock_payload),
        )

    @staticmethod
    async def list(backend: BillingBackend, account_id: str) -> list[Domain]:
        payload = await _call(backend, "GetClientsDomains", clientid=account_id)
        found = shaping.rows(payload, "domains", "domain")
        gate = asyncio.Semaphore(DOMAIN_LOOKUP_CONCURRENCY)

        async def _bounded(row: dict) -> Domain:
            async with gate:
                return await Domains._enrich(backend, row)

        return list(await asyncio.gather(*(_bounded(row) for row in found)))

    @staticmethod
    async def _owned_row(backend: BillingBackend, account_id: str, domain_id: str) -> dict:
        payload = await _call(
            backend, "GetClientsDomains", clientid=account_id, domainid=domain_id
        )
        found = shaping.rows(payload, "domains", "domain")
        if found:
            return found[0]
        probe = await _call(backend, "GetClientsDomains", domainid=domain_id)
        if shaping.rows(probe, "domains", "domain"):
            raise AccessDenied("Domain belongs to another account.")
        raise NotFound("Domain not found.")

    @staticmethod
    async def get(backend: BillingBackend, account_id: str, domain_id: str) -> Domain:
        row = await Domains._owned_row(backend, account_id, domain_id)
        return await Domains._enrich(backend, row)

    @staticmethod
    async def update_nameservers(
        backend: BillingBackend, account_id: str, domain_id: str, nameservers: list[str]
    ) -> None:
        cleaned = [ns.strip() for ns in nameservers if ns and ns.strip()]
        if len(cleaned) < MIN_NAMESERVERS:
            raise ValidationFailed("At least two nameservers are required.")
        if len(cleaned) > MAX_NAMESERVERS:
            raise ValidationFailed("At most five nameservers can be set.")
        await Domains._owned_row(backend, account_id, domain_id)
        params = {f"ns{index}": ns for index, ns in enumerate(cleaned, start=1)}
        await _call(backend, "DomainUpdateNameservers", domainid=domain_id, **params)
        logger.info("Updated nameservers for domain %s", domain_id)

    @staticmethod
    async def update_lock(
        backend: BillingBackend, account_id: str, domain_id: str, locked
    ) -> LockUpdateResponse:
        if not isinstance(locked, bool):
            raise ValidationFailed("A valid lock status (true or false) is required.")
        await Domains._owned_row(backend, account_id, domain_id)
        await _call(backend, "DomainUpdateLockingStatus", domainid=domain_id, lockstatus=locked)
        logger.info("Set registrar lock for domain %s to %s", domain_id, locked)
        return LockUpdateResponse(new_status=shaping.lock_status_label(locked))

    @staticmethod
    async def check(backend: BillingBackend, domain_name: str | None) -> DomainCheckResult:
        name = _require_text(domain_name, "Domain query parameter is required.")
        if not DOMAIN_NAME_RE.match(name):
            raise ValidationFailed("Invalid domain name format provided.")
        payload = await _call(backend, "DomainWhois", domain=name)
        return shaping.shape_domain_check(name, payload)

    @staticmethod
    async def place_order(
        backend: BillingBackend, account_id: str, config: DomainConfiguration
    ) -> DomainOrderResult:
        if not config.domain_name or not config.registration_period:
            raise ValidationFailed("Domain name and registration period are required.")
        name = config.domain_name.strip()
        if not DOMAIN_NAME_RE.match(name):
            raise ValidationFailed("Invalid domain name format provided.")
        if not 1 <= config.registration_period <= MAX_REGISTRATION_YEARS:
            raise ValidationFailed(
                f"Registration period must be between 1 and {MAX_REGISTRATION_YEARS} years."
            )
        nameservers = config.nameservers
        payload = await _call(
            backend,
            "AddOrder",
            clientid=account_id,
            paymentmethod=config.payment_method or settings.default_payment_method,
            **{
                "domain[0]": name,
                "domaintype[0]": "register",
                "regperiod[0]": config.registration_period,
                "idprotection[0]": config.id_protection,
                "dnsmanagement[0]": config.dns_management,
                "emailforwarding[0]": config.email_forwarding,
            },
            nameserver1=nameservers.ns1,
            nameserver2=nameservers.ns2,
            nameserver3=nameservers.ns3,
            nameserver4=nameservers.ns4,
        )
        order_id = coerce_id(payload.get("orderid"))
        invoice_id = coerce_id(payload.get("invoiceid"))
        if not order_id or not invoice_id:
            raise DownstreamFailure("AddOrder returned no order or invoice id")
        logger.info("Placed domain order %s for %s", order_id, name)
        return DomainOrderResult(
            orderid=order_id, invoiceid=invoice_id, invoice_url=invoice_url(invoice_id)
        )


class Invoices:
    @staticmethod
    async def list(
        backend: BillingBackend, account_id: str, status: str | None = None
    ) -> list[Invoice]:
        status_filter = validate_enum(status, InvoiceStatus, "invoice status") if status else None
        payload = await _call(
            backend,
            "GetInvoices",
            userid=account_id,
            status=status_filter.value if status_filter else None,
            limitnum=250,
        )
        return [shaping.shape_invoice(row) for row in shaping.rows(payload, "invoices", "invoice")]


class Payments:
    @staticmethod
    async def methods(backend: BillingBackend) -> list[PaymentMethod]:
        payload = await _call(backend, "GetPaymentMethods")
        return [
            shaping.shape_payment_method(row)
            for row in shaping.rows(payload, "paymentmethods", "paymentmethod")
        ]

    @staticmethod
    async def add_funds(
        backend: BillingBackend, account_id: str, amount, payment_method: str | None
    ) -> AddFundsResult:
        if (
            isinstance(amount, bool)
            or not isinstance(amount, (int, float))
            or not math.isfinite(amount)
            or amount <= 0
        ):
            raise ValidationFailed("Invalid amount specified.")
        method = _require_text(payment_method, "Payment method is required.")
        payload = await _call(
            backend,
            "CreateInvoice",
            userid=account_id,
            paymentmethod=method,
            sendinvoice=True,
            itemdescription1="Add Funds",
            itemamount1=f"{amount:.2f}",
            itemtaxed1=False,
        )
        invoice_id = coerce_id(payload.get("invoiceid"))
        if not invoice_id:
            raise DownstreamFailure("CreateInvoice returned no invoice id")
        logger.info("Created add-funds invoice %s for client %s", invoice_id, account_id)
        return AddFundsResult(invoice_id=invoice_id, payment_url=invoice_url(invoice_id))


class Tickets:
    @staticmethod
    def _status_param(status: str | None) -> str | None:
        if not status or status.strip().lower() in ("all", "any"):
            return None
        if status.strip().lower() in ("all active", "all active tickets", "active"):
            return "All Active Tickets"
        return validate_enum(status, TicketStatus, "ticket status").value

    @staticmethod
    async def list(
        backend: BillingBackend, account_id: str, status: str | None = None
    ) -> list[Ticket]:
        payload = await _call(
            backend,
            "GetTickets",
            clientid=account_id,
            status=Tickets._status_param(status),
            limitnum=250,
        )
        return [shaping.shape_ticket(row) for row in shaping.rows(payload, "tickets", "ticket")]

    @staticmethod
    async def get(backend: BillingBackend, account_id: str, ticket_id: str) -> Ticket:
        # GetTicket cannot be filtered by client, so ownership is checked on the row
        payload = await _call(backend, "GetTicket", ticketid=ticket_id)
        if coerce_id(payload.get("userid")) != str(account_id):
            raise AccessDenied("Ticket belongs to another account.")
        return shaping.shape_ticket(payload, with_replies=True)

    @staticmethod
    async def departments(backend: BillingBackend) -> list[Department]:
        payload = await _call(backend, "GetSupportDepartments")
        return [
            shaping.shape_department(row)
            for row in shaping.rows(payload, "departments", "department")
        ]

    @staticmethod
    async def open(
        backend: BillingBackend, account_id: str, payload: OpenTicketRequest
    ) -> OpenTicketResult:
        subject = _require_text(payload.subject, "Subject is required.")
        department = _require_text(payload.department, "Department is required.")
        message = _require_text(payload.message, "Message is required.")
        priority = validate_enum(payload.priority or "Medium", TicketPriority, "priority")

        departments = await Tickets.departments(backend)
        wanted = department.lower()
        match = next(
            (d for d in departments if d.name.lower() == wanted or d.id == department), None
        )
        if match is None:
            raise ValidationFailed(f"Unknown support department: {department}")

        result = await _call(
            backend,
            "OpenTicket",
            clientid=account_id,
            deptid=match.id,
            subject=subject,
            message=message,
            priority=priority.value,
        )
        ticket_id = coerce_id(result.get("id"))
        ticket_number = coerce_id(result.get("tid"))
        if not ticket_id or not ticket_number:
            raise DownstreamFailure("OpenTicket returned no ticket id")
        logger.info("Opened ticket %s for client %s", ticket_number, account_id)
        return OpenTicketResult(ticket_id=ticket_id, ticket_number=ticket_number)

    @staticmethod
    async def reply(
        backend: BillingBackend, account_id: str, ticket_id: str, message: str | None
    ) -> TicketReply:
        text = _require_text(message, "Reply message cannot be empty.")
        await Tickets.get(backend, account_id, ticket_id)
        result = await _call(
            backend, "AddTicketReply", ticketid=ticket_id, clientid=account_id, message=text
        )
        return TicketReply(
            id=coerce_id(result.get("replyid")) or "",
            author=ReplyAuthor.client,
            message=text,
            date=result.get("date") or datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        )


class Catalog:
    @staticmethod
    async def products(backend: BillingBackend, gid: str | None = None) -> list[Product]:
        payload = await _call(backend, "GetProducts", gid=gid or None)
        return [shaping.shape_product(row) for row in shaping.rows(payload, "products", "product")]

    @staticmethod
    async def product_groups(backend: BillingBackend) -> ProductGroupListing:
        """Product groups from GetProductGroups, else derived from the product list."""
        try:
            payload = await backend.call("GetProductGroups")
            groups = [
                shaping.shape_product_group(row)
                for row in shaping.rows(payload, "groups", "group")
            ]
        except WhmcsError as exc:
            logger.warning("GetProductGroups failed, deriving groups from products: %s", exc)
            groups = []
        if groups:
            return ProductGroupListing(groups=groups, source=GROUPS_SOURCE_PRIMARY)

        products = await Catalog.products(backend)
        derived = shaping.derive_product_groups(products)
        return ProductGroupListing(
            groups=derived,
            source=GROUPS_SOURCE_DERIVED,
            all_products=products,
            message=None if derived else "No product groups found.",
        )


accounts = Accounts()
services = Services()
domains = Domains()
invoices = Invoices()
payments = Payments()
tickets = Tickets()
catalog = Catalog()
