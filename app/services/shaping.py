"""Response shaping: raw WHMCS payloads to portal entities.

Every function here is pure. The same payload always produces the same
entity, and nothing here talks to the billing system.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from app.models.portal import (
    DomainAvailability,
    DomainStatus,
    InvoiceStatus,
    RegistrarLockStatus,
    ReplyAuthor,
    ServiceStatus,
    TicketPriority,
    TicketStatus,
)
from app.schemas.account import Account
from app.schemas.billing import Invoice, InvoiceItem, PaymentMethod
from app.schemas.domains import Domain, DomainCheckResult, DomainPricing
from app.schemas.hosting import PricingCycle, Product, ProductGroup, ServerInfo, Service
from app.schemas.support import Department, Ticket, TicketReply
from app.services.common import coerce_id, format_money, parse_enum, to_decimal

# Limits at or above this are how WHMCS modules report "unlimited"
UNLIMITED_SENTINEL = 9999999

_NUMBER_RE = re.compile(r"[^\d.\-]")

_CYCLE_NAMES = {
    "monthly": "Monthly",
    "quarterly": "Quarterly",
    "semiannually": "Semi-Annually",
    "annually": "Annually",
    "biennially": "Biennially",
    "triennially": "Triennially",
}


@dataclass(frozen=True)
class Currency:
    prefix: str = "$"
    suffix: str = " USD"


DEFAULT_CURRENCY = Currency()


def rows(payload: dict, key: str, item_key: str) -> list[dict]:
    """Unwrap WHMCS list containers such as ``{"products": {"product": [...]}}``.

    WHMCS sends an empty string instead of the container when there are no
    results, and a bare object instead of a list when there is exactly one.
    """
    container = payload.get(key)
    if not isinstance(container, dict):
        return []
    items = container.get(item_key)
    if isinstance(items, dict):
        return [items]
    if isinstance(items, list):
        return [item for item in items if isinstance(item, dict)]
    return []


# -- usage -----------------------------------------------------------------


def parse_usage_value(value) -> float:
    """Parse usage strings like ``"1024 MB"`` into a number; unparseable is 0."""
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = _NUMBER_RE.sub("", value)
        try:
            return float(cleaned)
        except ValueError:
            return 0.0
    return 0.0


def is_unlimited(limit: float) -> bool:
    return limit == 0 or limit >= UNLIMITED_SENTINEL


def usage_percent(used, limit) -> float:
    used_value = parse_usage_value(used)
    limit_value = parse_usage_value(limit)
    if is_unlimited(limit_value):
        return 100.0 if used_value > 0 else 0.0
    return round(used_value / limit_value * 100, 2)


def format_usage(used, limit, unit: str = "MB") -> str:
    """Render ``used / limit``; ``N/A`` when nothing is used of an unlimited quota."""
    used_value = parse_usage_value(used)
    limit_value = parse_usage_value(limit)
    if is_unlimited(limit_value):
        if used_value == 0:
            return "N/A"
        limit_text = "Unlimited"
    else:
        limit_text = f"{limit_value:.0f} {unit}"
    return f"{used_value:.0f} {unit} / {limit_text}"


# -- accounts --------------------------------------------------------------


def shape_account(payload: dict) -> Account:
    client = payload.get("client") if isinstance(payload.get("client"), dict) else payload
    return Account(
        id=coerce_id(client.get("id") or client.get("userid") or client.get("client_id")) or "",
        email=client.get("email") or "",
        first_name=client.get("firstname") or "",
        last_name=client.get("lastname") or "",
        company_name=client.get("companyname") or None,
        address1=client.get("address1") or None,
        city=client.get("city") or None,
        state=client.get("state") or None,
        postcode=client.get("postcode") or None,
        country=client.get("country") or client.get("countrycode") or None,
        phone_number=client.get("phonenumber") or None,
    )


# -- services --------------------------------------------------------------


def _server_info(row: dict) -> ServerInfo | None:
    hostname = row.get("serverhostname") or ""
    ip_address = row.get("serverip") or ""
    if not hostname and not ip_address:
        return None
    return ServerInfo(hostname=hostname, ip_address=ip_address)


def shape_service(
    row: dict,
    *,
    with_usage: bool = False,
    control_panel_link: str | None = None,
    currency: Currency = DEFAULT_CURRENCY,
) -> Service:
    amount = row.get("recurringamount")
    if amount in (None, ""):
        amount = row.get("firstpaymentamount")
    fields = {
        "id": coerce_id(row.get("id")) or "",
        "account_id": coerce_id(row.get("clientid")) or "",
        "name": row.get("name") or row.get("translated_name") or "",
        "group_name": row.get("groupname") or None,
        "status": parse_enum(ServiceStatus, row.get("status"), "service status"),
        "registration_date": row.get("regdate") or "",
        "next_due_date": row.get("nextduedate") or "",
        "billing_cycle": row.get("billingcycle") or "",
        "amount": format_money(amount, currency.prefix, currency.suffix),
        "domain": row.get("domain") or None,
        "server_info": _server_info(row),
        "username": row.get("username") or None,
        "disk_usage": coerce_id(row.get("diskusage")),
        "disk_limit": coerce_id(row.get("disklimit")),
        "bw_usage": coerce_id(row.get("bwusage")),
        "bw_limit": coerce_id(row.get("bwlimit")),
        "last_update": row.get("lastupdate") or None,
    }
    if with_usage:
        fields.update(
            disk_usage_percent=usage_percent(row.get("diskusage"), row.get("disklimit")),
            disk_usage_raw=format_usage(row.get("diskusage"), row.get("disklimit"), "MB"),
            bandwidth_usage_percent=usage_percent(row.get("bwusage"), row.get("bwlimit")),
            bandwidth_usage_raw=format_usage(row.get("bwusage"), row.get("bwlimit"), "GB"),
            control_panel_link=control_panel_link,
        )
    return Service(**fields)


# -- domains ---------------------------------------------------------------


def nameservers_from(payload: dict) -> list[str]:
    values = [payload.get(f"ns{index}") for index in range(1, 6)]
    return [str(value).strip() for value in values if value and str(value).strip()]


def lock_state_from(payload: dict) -> bool:
    return str(payload.get("lockstatus") or "").strip().lower() == "locked"


def lock_status_label(locked: bool) -> RegistrarLockStatus:
    return RegistrarLockStatus.locked if locked else RegistrarLockStatus.unlocked


def shape_domain(
    row: dict,
    nameservers: list[str],
    locked: bool,
    currency: Currency = DEFAULT_CURRENCY,
) -> Domain:
    return Domain(
        id=coerce_id(row.get("id")) or "",
        account_id=coerce_id(row.get("userid")) or "",
        domain_name=row.get("domainname") or "",
        status=parse_enum(DomainStatus, row.get("status"), "domain status"),
        registration_date=row.get("regdate") or "",
        expiry_date=row.get("expirydate") or "",
        registrar=row.get("registrar") or "",
        nameservers=nameservers,
        registrar_lock=locked,
        registrar_lock_status=lock_status_label(locked),
        first_payment_amount=format_money(
            row.get("firstpaymentamount"), currency.prefix, currency.suffix
        ),
        recurring_amount=format_money(
            row.get("recurringamount"), currency.prefix, currency.suffix
        ),
        payment_method=row.get("paymentmethodname") or row.get("paymentmethod") or None,
    )


def shape_domain_check(domain_name: str, payload: dict) -> DomainCheckResult:
    pricing = None
    raw_pricing = payload.get("pricing")
    if isinstance(raw_pricing, dict) and raw_pricing.get("register"):
        pricing = DomainPricing(
            register_price=str(raw_pricing["register"]),
            period=str(raw_pricing.get("period") or "1"),
        )
    return DomainCheckResult(
        domain_name=domain_name,
        status=parse_enum(DomainAvailability, payload.get("status"), "availability status"),
        pricing=pricing,
    )


# -- billing ---------------------------------------------------------------


def shape_invoice(row: dict) -> Invoice:
    prefix = row.get("currencyprefix", DEFAULT_CURRENCY.prefix)
    suffix = row.get("currencysuffix", DEFAULT_CURRENCY.suffix)
    items = [
        InvoiceItem(
            description=item.get("description") or "",
            amount=format_money(item.get("amount"), prefix, ""),
        )
        for item in rows(row, "items", "item")
    ]
    invoice_id = coerce_id(row.get("id")) or ""
    return Invoice(
        id=invoice_id,
        account_id=coerce_id(row.get("userid")) or "",
        invoice_number=row.get("invoicenum") or invoice_id,
        date_created=row.get("date") or "",
        due_date=row.get("duedate") or "",
        total=format_money(row.get("total"), prefix, suffix),
        status=parse_enum(InvoiceStatus, row.get("status"), "invoice status"),
        items=items,
    )


def shape_payment_method(row: dict) -> PaymentMethod:
    return PaymentMethod(
        module=row.get("module") or "",
        display_name=row.get("displayname") or row.get("module") or "",
    )


# -- support ---------------------------------------------------------------


def shape_ticket_reply(row: dict) -> TicketReply:
    author = ReplyAuthor.support_staff if row.get("admin") else ReplyAuthor.client
    attachments = row.get("attachments")
    return TicketReply(
        id=coerce_id(row.get("replyid") or row.get("id")) or "",
        author=author,
        message=row.get("message") or "",
        date=row.get("date") or "",
        attachments=[str(a) for a in attachments] if isinstance(attachments, list) else [],
    )


def shape_ticket(row: dict, *, with_replies: bool = False) -> Ticket:
    replies = []
    if with_replies:
        replies = [shape_ticket_reply(reply) for reply in rows(row, "replies", "reply")]
    return Ticket(
        id=coerce_id(row.get("ticketid") or row.get("id")) or "",
        account_id=coerce_id(row.get("userid")) or "",
        ticket_number=coerce_id(row.get("tid")) or "",
        subject=row.get("subject") or "",
        department=row.get("deptname") or "",
        status=parse_enum(TicketStatus, row.get("status"), "ticket status"),
        priority=parse_enum(TicketPriority, row.get("priority"), "ticket priority"),
        date_opened=row.get("date") or "",
        last_updated=row.get("lastreply") or row.get("date") or "",
        replies=replies,
    )


def shape_department(row: dict) -> Department:
    return Department(id=coerce_id(row.get("id")) or "", name=row.get("name") or "")


# -- catalog ---------------------------------------------------------------


def parse_pricing_cycles(row: dict) -> list[PricingCycle]:
    """Turn the WHMCS pricing matrix into the cycles a customer can pick.

    WHMCS marks a disabled cycle with a negative price. Only the first
    currency in the matrix is used.
    """
    paytype = (row.get("paytype") or "").lower()
    if paytype == "free":
        return [PricingCycle(cycle_name="Free", display_price="Free", whmcs_cycle="free")]
    pricing = row.get("pricing")
    if not isinstance(pricing, dict) or not pricing:
        return []
    currency_code = next(iter(pricing))
    matrix = pricing[currency_code] or {}
    prefix = matrix.get("prefix", "")
    suffix = matrix.get("suffix", f" {currency_code}")

    def _setup_fee(cycle: str) -> str | None:
        fee = to_decimal(matrix.get(f"{cycle[0]}setupfee"))
        if fee <= 0:
            return None
        return f"{format_money(fee, prefix, suffix)} Setup"

    if paytype == "onetime":
        price = to_decimal(matrix.get("monthly"), Decimal("-1"))
        if price < 0:
            return []
        return [
            PricingCycle(
                cycle_name="One Time",
                display_price=format_money(price, prefix, suffix),
                whmcs_cycle="onetime",
                setup_fee=_setup_fee("monthly"),
            )
        ]

    cycles = []
    for cycle, cycle_name in _CYCLE_NAMES.items():
        price = to_decimal(matrix.get(cycle), Decimal("-1"))
        if price < 0:
            continue
        cycles.append(
            PricingCycle(
                cycle_name=cycle_name,
                display_price=format_money(price, prefix, suffix),
                whmcs_cycle=cycle,
                setup_fee=_setup_fee(cycle),
            )
        )
    return cycles


def shape_product(row: dict) -> Product:
    return Product(
        pid=coerce_id(row.get("pid")) or "",
        gid=coerce_id(row.get("gid")) or "",
        group_name=row.get("groupname") or None,
        type=row.get("type") or None,
        name=row.get("name") or "",
        description=row.get("description") or "",
        module=row.get("module") or None,
        paytype=row.get("paytype") or None,
        parsed_pricing_cycles=parse_pricing_cycles(row),
    )


def shape_product_group(row: dict) -> ProductGroup:
    order = row.get("order")
    return ProductGroup(
        id=coerce_id(row.get("id") or row.get("gid")) or "",
        name=row.get("name") or row.get("groupname") or "",
        headline=row.get("headline") or None,
        tagline=row.get("tagline") or None,
        order=int(order) if str(order or "").isdigit() else None,
    )


def products_by_group(products: list[Product]) -> dict[str, list[Product]]:
    grouped: dict[str, list[Product]] = {}
    for product in products:
        grouped.setdefault(product.gid, []).append(product)
    return grouped


def derive_product_groups(products: list[Product]) -> list[ProductGroup]:
    """Build groups from a flat product list, in first-seen order."""
    groups = []
    for gid, members in products_by_group(products).items():
        if not gid:
            continue
        name = next((p.group_name for p in members if p.group_name), None)
        groups.append(ProductGroup(id=gid, name=name or f"Group {gid}"))
    return groups
