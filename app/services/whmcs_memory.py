"""In-memory stand-in for the WHMCS API.

Answers the same actions as :class:`app.services.whmcs.WhmcsClient` with
WHMCS-shaped payloads over seeded sample data. Each instance owns its own
data, so an application (or a test) gets a fresh store per instance.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from passlib.context import CryptContext

from app.services.whmcs import WhmcsError

logger = logging.getLogger(__name__)

PASSWORD_CONTEXT = CryptContext(schemes=["pbkdf2_sha256"], default="pbkdf2_sha256")

SAMPLE_EMAIL = "test@example.com"
SAMPLE_PASSWORD = "password123"

_DATE = "%Y-%m-%d"
_DATETIME = "%Y-%m-%d %H:%M:%S"

_ACTIVE_TICKET_STATUSES = {"Open", "Answered", "Customer-Reply", "In Progress", "On Hold"}
_PRICING_CYCLES = ("monthly", "quarterly", "semiannually", "annually", "biennially", "triennially")


def _day(offset: int, now: datetime) -> str:
    return (now + timedelta(days=offset)).strftime(_DATE)


def _stamp(offset: int, now: datetime) -> str:
    return (now + timedelta(days=offset)).strftime(_DATETIME)


def _pricing(**prices: str) -> dict:
    row = {"prefix": "$", "suffix": " USD"}
    for cycle in _PRICING_CYCLES:
        row[cycle] = prices.get(cycle, "-1.00")
        row[f"{cycle[0]}setupfee"] = prices.get(f"{cycle}_setup", "0.00")
    return {"USD": row}


def _seed(now: datetime) -> dict[str, Any]:
    return {
        "clients": {
            1: {
                "id": 1,
                "email": SAMPLE_EMAIL,
                "password_hash": PASSWORD_CONTEXT.hash(SAMPLE_PASSWORD),
                "firstname": "John",
                "lastname": "Doe",
                "companyname": "Doe Industries",
                "address1": "123 Mockingbird Lane",
                "city": "Anytown",
                "state": "Anystate",
                "postcode": "12345",
                "country": "US",
                "phonenumber": "555-123-4567",
            }
        },
        "services": [
            {
                "id": 101, "clientid": 1, "pid": 2, "name": "Premium Web Hosting",
                "groupname": "Shared Hosting", "status": "Active",
                "regdate": _day(-90, now), "nextduedate": _day(20, now),
                "billingcycle": "Monthly", "recurringamount": "15.00",
                "domain": "mycoolwebsite.com", "serverhostname": "server1.example.net",
                "serverip": "203.0.113.10", "username": "mycoolw",
                "diskusage": 5120, "disklimit": 20480, "bwusage": 15360, "bwlimit": 102400,
                "lastupdate": _stamp(0, now),
            },
            {
                "id": 102, "clientid": 1, "pid": 4, "name": "Basic VPS",
                "groupname": "VPS Servers", "status": "Suspended",
                "regdate": _day(-180, now), "nextduedate": _day(-10, now),
                "billingcycle": "Quarterly", "recurringamount": "45.00",
                "domain": "dev.mycoolwebsite.com", "serverhostname": "vps7.example.net",
                "serverip": "203.0.113.77", "username": "",
                "diskusage": 10240, "disklimit": 51200, "bwusage": 81920, "bwlimit": 1048576,
                "lastupdate": _stamp(0, now),
            },
            {
                "id": 103, "clientid": 1, "pid": 0, "name": "Domain Registration",
                "groupname": "", "status": "Active",
                "regdate": _day(-365, now), "nextduedate": _day(30, now),
                "billingcycle": "Annually", "recurringamount": "12.99",
                "domain": "anotherdomain.net", "serverhostname": "", "serverip": "",
                "username": "", "diskusage": 0, "disklimit": 0, "bwusage": 0, "bwlimit": 0,
                "lastupdate": "0000-00-00 00:00:00",
            },
            {
                "id": 104, "clientid": 1, "pid": 5, "name": "Business Email Hosting",
                "groupname": "Email", "status": "Terminated",
                "regdate": _day(-700, now), "nextduedate": _day(-30, now),
                "billingcycle": "Monthly", "recurringamount": "5.00",
                "domain": "anotherdomain.net", "serverhostname": "", "serverip": "",
                "username": "", "diskusage": 0, "disklimit": 0, "bwusage": 0, "bwlimit": 0,
                "lastupdate": "0000-00-00 00:00:00",
            },
        ],
        "domains": [
            {
                "id": 201, "userid": 1, "domainname": "mycoolwebsite.com", "status": "Active",
                "regdate": _day(-400, now), "expirydate": _day(300, now), "registrar": "enom",
                "firstpaymentamount": "1547.00", "recurringamount": "1547.00",
                "paymentmethodname": "bKash Merchant",
                "nameservers": ["ns1.snbdhost.com", "ns2.snbdhost.com"], "locked": True,
            },
            {
                "id": 202, "userid": 1, "domainname": "anotherdomain.net", "status": "Expired",
                "regdate": _day(-800, now), "expirydate": _day(-30, now), "registrar": "namecheap",
                "firstpaymentamount": "1200.00", "recurringamount": "1200.00",
                "paymentmethodname": "Stripe",
                "nameservers": ["dns1.namecheap.com", "dns2.namecheap.com"], "locked": False,
            },
            {
                "id": 203, "userid": 1, "domainname": "newproject.dev", "status": "Pending",
                "regdate": _day(0, now), "expirydate": _day(365, now), "registrar": "godaddy",
                "firstpaymentamount": "0.00", "recurringamount": "999.00",
                "paymentmethodname": "PayPal",
                "nameservers": ["ns1.godaddy.com", "ns2.godaddy.com", "ns3.godaddy.com"],
                "locked": True,
            },
        ],
        "invoices": [
            {
                "id": 301, "userid": 1, "invoicenum": "INV-001", "date": _day(-45, now),
                "duedate": _day(-15, now), "total": "15.00", "status": "Paid",
                "items": [{"description": "Premium Web Hosting", "amount": "15.00"}],
            },
            {
                "id": 302, "userid": 1, "invoicenum": "INV-002", "date": _day(-15, now),
                "duedate": _day(15, now), "total": "60.00", "status": "Unpaid",
                "items": [
                    {"description": "Basic VPS", "amount": "45.00"},
                    {"description": "Domain Renewal", "amount": "15.00"},
                ],
            },
            {
                "id": 303, "userid": 1, "invoicenum": "INV-003", "date": _day(-75, now),
                "duedate": _day(-45, now), "total": "100.00", "status": "Overdue",
                "items": [{"description": "Dedicated Server Setup", "amount": "100.00"}],
            },
            {
                "id": 304, "userid": 1, "invoicenum": "INV-004", "date": _day(-100, now),
                "duedate": _day(-70, now), "total": "25.00", "status": "Cancelled",
                "items": [{"description": "SSL Certificate", "amount": "25.00"}],
            },
        ],
        "tickets": [
            {
                "id": 1, "tid": "ABC-12345", "userid": 1, "deptid": 1,
                "subject": "My website is slow", "status": "Answered", "priority": "Medium",
                "date": _stamp(-2, now), "lastreply": _stamp(-1, now),
                "replies": [
                    {
                        "replyid": "1", "userid": 1, "admin": "",
                        "message": (
                            "Hello, my website seems to be loading very slowly today. "
                            "Can you please check?"
                        ),
                        "date": _stamp(-2, now),
                    },
                    {
                        "replyid": "2", "userid": 0, "admin": "Sarah",
                        "message": (
                            "Hi John, thank you for reaching out. We have checked your server "
                            "and optimized your database. Please let us know if you see an "
                            "improvement."
                        ),
                        "date": _stamp(-1, now),
                    },
                ],
            },
            {
                "id": 2, "tid": "DEF-67890", "userid": 1, "deptid": 2,
                "subject": "Billing question", "status": "Closed", "priority": "Low",
                "date": _stamp(-12, now), "lastreply": _stamp(-10, now), "replies": [],
            },
            {
                "id": 3, "tid": "GHI-11223", "userid": 1, "deptid": 3,
                "subject": "New service inquiry", "status": "Customer-Reply", "priority": "High",
                "date": _stamp(0, now), "lastreply": _stamp(0, now), "replies": [],
            },
        ],
        "departments": [
            {"id": 1, "name": "Technical Support"},
            {"id": 2, "name": "Billing"},
            {"id": 3, "name": "Sales"},
        ],
        "product_groups": [
            {"id": 1, "name": "Shared Hosting", "headline": "Fast, reliable web hosting"},
            {"id": 2, "name": "Reseller Hosting", "headline": "Start your own hosting business"},
            {"id": 3, "name": "VPS Servers", "headline": "Dedicated resources, full root"},
        ],
        "products": [
            {
                "pid": 1, "gid": 1, "groupname": "Shared Hosting", "type": "hostingaccount",
                "name": "Starter Plan", "module": "cpanel", "paytype": "recurring",
                "description": (
                    "<ul><li>10 GB SSD Storage</li><li>100 GB Bandwidth</li>"
                    "<li>5 Email Accounts</li><li>Free SSL</li></ul>"
                ),
                "pricing": _pricing(monthly="5.00", annually="50.00"),
            },
            {
                "pid": 2, "gid": 1, "groupname": "Shared Hosting", "type": "hostingaccount",
                "name": "Business Plan", "module": "cpanel", "paytype": "recurring",
                "description": (
                    "<ul><li>50 GB SSD Storage</li><li>1 TB Bandwidth</li>"
                    "<li>Unlimited Emails</li><li>Free SSL &amp; Daily Backups</li></ul>"
                ),
                "pricing": _pricing(monthly="15.00", annually="99.00"),
            },
            {
                "pid": 3, "gid": 2, "groupname": "Reseller Hosting", "type": "reselleraccount",
                "name": "Reseller Basic", "module": "cpanel", "paytype": "recurring",
                "description": "<p>Start your own hosting business!</p>",
                "pricing": _pricing(monthly="25.00", monthly_setup="10.00"),
            },
            {
                "pid": 4, "gid": 3, "groupname": "VPS Servers", "type": "server",
                "name": "Basic VPS", "module": "virtualizor", "paytype": "recurring",
                "description": "<ul><li>2 vCPU</li><li>4 GB RAM</li><li>80 GB NVMe</li></ul>",
                "pricing": _pricing(quarterly="45.00", annually="170.00"),
            },
        ],
        "payment_methods": [
            {"module": "paypal", "displayname": "PayPal"},
            {"module": "stripe", "displayname": "Credit/Debit Card (Stripe)"},
            {"module": "banktransfer", "displayname": "Bank Transfer"},
        ],
    }


def _id(value: Any) -> int | None:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return None


def _wrap(key: str, item_key: str, rows: list[dict]) -> dict:
    return {
        "result": "success",
        "totalresults": len(rows),
        "numreturned": len(rows),
        key: {item_key: rows} if rows else "",
    }


class InMemoryWhmcs:
    """WHMCS API fake with seeded data for local development and tests."""

    def __init__(
        self,
        *,
        product_groups_enabled: bool = True,
        now: datetime | None = None,
    ) -> None:
        self.now = now or datetime.now()
        self.product_groups_enabled = product_groups_enabled
        self._data = copy.deepcopy(_seed(self.now))
        self._next_ticket_id = 4
        self._next_invoice_id = 400
        self._next_order_id = 555
        self._next_domain_id = 204
        self._next_reply_id = 100
        self.calls: list[tuple[str, dict]] = []
        self._handlers: dict[str, Callable[[dict], dict]] = {
            "ValidateLogin": self._validate_login,
            "AddClient": self._add_client,
            "GetClientsDetails": self._get_clients_details,
            "ResendVerificationEmail": self._resend_verification_email,
            "GetClientsProducts": self._get_clients_products,
            "CreateSsoToken": self._create_sso_token,
            "GetClientsDomains": self._get_clients_domains,
            "DomainGetNameservers": self._domain_get_nameservers,
            "DomainGetLockingStatus": self._domain_get_locking_status,
            "DomainUpdateNameservers": self._domain_update_nameservers,
            "DomainUpdateLockingStatus": self._domain_update_locking_status,
            "DomainWhois": self._domain_whois,
            "GetInvoices": self._get_invoices,
            "CreateInvoice": self._create_invoice,
            "GetPaymentMethods": self._get_payment_methods,
            "GetTickets": self._get_tickets,
            "GetTicket": self._get_ticket,
            "GetSupportDepartments": self._get_support_departments,
            "OpenTicket": self._open_ticket,
            "AddTicketReply": self._add_ticket_reply,
            "GetProducts": self._get_products,
            "GetProductGroups": self._get_product_groups,
            "AddOrder": self._add_order,
        }

    async def call(self, action: str, **params: Any) -> dict:
        self.calls.append((action, dict(params)))
        logger.debug("In-memory WHMCS %s", action)
        handler = self._handlers.get(action)
        if handler is None:
            raise WhmcsError("Command Not Found", action)
        try:
            return copy.deepcopy(handler(params))
        except WhmcsError as exc:
            exc.action = action
            raise

    def call_count(self, action: str) -> int:
        return sum(1 for name, _ in self.calls if name == action)

    # -- clients -----------------------------------------------------------

    def _client(self, client_id: Any) -> dict:
        client = self._data["clients"].get(_id(client_id))
        if client is None:
            raise WhmcsError("Client Not Found")
        return client

    def _validate_login(self, params: dict) -> dict:
        email = str(params.get("email") or "").strip().lower()
        password = params.get("password2") or ""
        for client in self._data["clients"].values():
            if client["email"].lower() == email and PASSWORD_CONTEXT.verify(
                password, client["password_hash"]
            ):
                return {"result": "success", "userid": client["id"], "passwordhash": ""}
        raise WhmcsError("Email or Password Invalid")

    def _add_client(self, params: dict) -> dict:
        email = str(params.get("email") or "").strip()
        if any(c["email"].lower() == email.lower() for c in self._data["clients"].values()):
            raise WhmcsError("A user already exists with that email address")
        client_id = max(self._data["clients"]) + 1
        self._data["clients"][client_id] = {
            "id": client_id,
            "email": email,
            "password_hash": PASSWORD_CONTEXT.hash(params.get("password2") or ""),
            "firstname": params.get("firstname") or "",
            "lastname": params.get("lastname") or "",
            "companyname": params.get("companyname") or "",
            "address1": params.get("address1") or "",
            "city": params.get("city") or "",
            "state": params.get("state") or "",
            "postcode": params.get("postcode") or "",
            "country": params.get("country") or "",
            "phonenumber": params.get("phonenumber") or "",
        }
        return {"result": "success", "clientid": client_id}

    def _get_clients_details(self, params: dict) -> dict:
        client = {k: v for k, v in self._client(params.get("clientid")).items() if k != "password_hash"}
        return {"result": "success", "client": client, **client}

    def _resend_verification_email(self, params: dict) -> dict:
        self._client(params.get("id"))
        return {"result": "success"}

    # -- services ----------------------------------------------------------

    def _get_clients_products(self, params: dict) -> dict:
        rows = self._data["services"]
        if params.get("clientid") is not None:
            rows = [r for r in rows if r["clientid"] == _id(params["clientid"])]
        if params.get("serviceid") is not None:
            rows = [r for r in rows if r["id"] == _id(params["serviceid"])]
        return _wrap("products", "product", rows)

    def _create_sso_token(self, params: dict) -> dict:
        service_id = _id(params.get("service_id"))
        client_id = _id(params.get("client_id"))
        for row in self._data["services"]:
            if row["id"] == service_id and row["clientid"] == client_id:
                if not row.get("username"):
                    raise WhmcsError("Service has no control panel account")
                return {
                    "result": "success",
                    "access_token": f"sso-{service_id}",
                    "redirect_url": f"https://{row['serverhostname']}:2083/login/?session=sso-{service_id}",
                }
        raise WhmcsError("Service ID Not Found")

    # -- domains -----------------------------------------------------------

    def _domain(self, domain_id: Any) -> dict:
        for row in self._data["domains"]:
            if row["id"] == _id(domain_id):
                return row
        raise WhmcsError("Domain ID Not Found")

    def _get_clients_domains(self, params: dict) -> dict:
        rows = self._data["domains"]
        if params.get("clientid") is not None:
            rows = [r for r in rows if r["userid"] == _id(params["clientid"])]
        if params.get("domainid") is not None:
            rows = [r for r in rows if r["id"] == _id(params["domainid"])]
        public = [
            {k: v for k, v in r.items() if k not in ("nameservers", "locked")} for r in rows
        ]
        return _wrap("domains", "domain", public)

    def _domain_get_nameservers(self, params: dict) -> dict:
        row = self._domain(params.get("domainid"))
        payload: dict[str, Any] = {"result": "success"}
        for index, ns in enumerate(row["nameservers"], start=1):
            payload[f"ns{index}"] = ns
        return payload

    def _domain_get_locking_status(self, params: dict) -> dict:
        row = self._domain(params.get("domainid"))
        return {"result": "success", "lockstatus": "locked" if row["locked"] else "unlocked"}

    def _domain_update_nameservers(self, params: dict) -> dict:
        row = self._domain(params.get("domainid"))
        nameservers = [params.get(f"ns{i}") for i in range(1, 6)]
        row["nameservers"] = [ns for ns in nameservers if ns]
        return {"result": "success"}

    def _domain_update_locking_status(self, params: dict) -> dict:
        row = self._domain(params.get("domainid"))
        row["locked"] = str(params.get("lockstatus")) in ("1", "True", "true")
        return {"result": "success"}

    def _domain_whois(self, params: dict) -> dict:
        name = str(params.get("domain") or "").lower()
        taken = any(r["domainname"].lower() == name for r in self._data["domains"])
        return {
            "result": "success",
            "status": "unavailable" if taken else "available",
            "whois": "",
        }

    # -- billing -----------------------------------------------------------

    def _get_invoices(self, params: dict) -> dict:
        rows = [r for r in self._data["invoices"] if r["userid"] == _id(params.get("userid"))]
        if params.get("status"):
            rows = [r for r in rows if r["status"] == params["status"]]
        rows = [
            {
                **{k: v for k, v in r.items() if k != "items"},
                "currencyprefix": "$",
                "currencysuffix": " USD",
                "items": {"item": r["items"]},
            }
            for r in rows
        ]
        return _wrap("invoices", "invoice", rows)

    def _create_invoice(self, params: dict) -> dict:
        self._client(params.get("userid"))
        method = params.get("paymentmethod")
        modules = [m["module"] for m in self._data["payment_methods"]]
        if method not in modules:
            raise WhmcsError(
                f"Invalid Payment Method. Valid options include {','.join(modules)}"
            )
        invoice_id = self._next_invoice_id
        self._next_invoice_id += 1
        amount = f"{float(params.get('itemamount1') or 0):.2f}"
        self._data["invoices"].append(
            {
                "id": invoice_id, "userid": _id(params.get("userid")),
                "invoicenum": "", "date": _day(0, self.now), "duedate": _day(7, self.now),
                "total": amount, "status": "Unpaid",
                "items": [{"description": params.get("itemdescription1") or "", "amount": amount}],
            }
        )
        return {"result": "success", "invoiceid": invoice_id, "status": "Unpaid"}

    def _get_payment_methods(self, params: dict) -> dict:
        return _wrap("paymentmethods", "paymentmethod", self._data["payment_methods"])

    # -- support -----------------------------------------------------------

    def _department_name(self, dept_id: Any) -> str:
        for dept in self._data["departments"]:
            if dept["id"] == _id(dept_id):
                return dept["name"]
        return ""

    def _ticket_row(self, row: dict) -> dict:
        return {
            **{k: v for k, v in row.items() if k != "replies"},
            "deptname": self._department_name(row["deptid"]),
        }

    def _get_tickets(self, params: dict) -> dict:
        rows = [r for r in self._data["tickets"] if r["userid"] == _id(params.get("clientid"))]
        status = params.get("status")
        if status == "All Active Tickets":
            rows = [r for r in rows if r["status"] in _ACTIVE_TICKET_STATUSES]
        elif status:
            rows = [r for r in rows if r["status"] == status]
        return _wrap("tickets", "ticket", [self._ticket_row(r) for r in rows])

    def _ticket(self, ticket_id: Any) -> dict:
        for row in self._data["tickets"]:
            if row["id"] == _id(ticket_id):
                return row
        raise WhmcsError("Ticket ID Not Found")

    def _get_ticket(self, params: dict) -> dict:
        row = self._ticket(params.get("ticketid"))
        payload = self._ticket_row(row)
        payload["ticketid"] = payload.pop("id")
        payload["replies"] = {"reply": row["replies"]}
        return {"result": "success", **payload}

    def _get_support_departments(self, params: dict) -> dict:
        return {
            "result": "success",
            "totalresults": len(self._data["departments"]),
            "departments": {"department": self._data["departments"]},
        }

    def _open_ticket(self, params: dict) -> dict:
        client_id = _id(params.get("clientid"))
        self._client(client_id)
        if not self._department_name(params.get("deptid")):
            raise WhmcsError("Department ID not found")
        ticket_id = self._next_ticket_id
        self._next_ticket_id += 1
        tid = f"XYZ-{10000 + ticket_id}"
        stamp = _stamp(0, self.now)
        self._data["tickets"].append(
            {
                "id": ticket_id, "tid": tid, "userid": client_id,
                "deptid": _id(params.get("deptid")), "subject": params.get("subject") or "",
                "status": "Open", "priority": params.get("priority") or "Medium",
                "date": stamp, "lastreply": stamp,
                "replies": [
                    {
                        "replyid": str(self._new_reply_id()), "userid": client_id, "admin": "",
                        "message": params.get("message") or "", "date": stamp,
                    }
                ],
            }
        )
        return {"result": "success", "id": ticket_id, "tid": tid, "c": f"c{ticket_id}"}

    def _new_reply_id(self) -> int:
        reply_id = self._next_reply_id
        self._next_reply_id += 1
        return reply_id

    def _add_ticket_reply(self, params: dict) -> dict:
        row = self._ticket(params.get("ticketid"))
        reply_id = self._new_reply_id()
        stamp = _stamp(0, self.now)
        row["replies"].append(
            {
                "replyid": str(reply_id), "userid": _id(params.get("clientid")), "admin": "",
                "message": params.get("message") or "", "date": stamp,
            }
        )
        row["status"] = "Customer-Reply"
        row["lastreply"] = stamp
        return {"result": "success", "replyid": reply_id, "date": stamp}

    # -- catalog and orders --------------------------------------------------

    def _get_products(self, params: dict) -> dict:
        rows = self._data["products"]
        if params.get("gid") is not None:
            rows = [r for r in rows if r["gid"] == _id(params["gid"])]
        if params.get("pid") is not None:
            rows = [r for r in rows if r["pid"] == _id(params["pid"])]
        return _wrap("products", "product", rows)

    def _get_product_groups(self, params: dict) -> dict:
        if not self.product_groups_enabled:
            raise WhmcsError("Command Not Found")
        return _wrap("groups", "group", self._data["product_groups"])

    def _add_order(self, params: dict) -> dict:
        client_id = _id(params.get("clientid"))
        self._client(client_id)
        domain_name = params.get("domain[0]")
        if not domain_name:
            raise WhmcsError("No items added to cart so order cannot proceed")
        period = _id(params.get("regperiod[0]")) or 1
        invoice = self._create_invoice(
            {
                "userid": client_id,
                "paymentmethod": params.get("paymentmethod"),
                "itemdescription1": f"Domain Registration - {domain_name} - {period} Year/s",
                "itemamount1": 10.99 * period,
            }
        )
        order_id = self._next_order_id
        self._next_order_id += 1
        domain_id = self._next_domain_id
        self._next_domain_id += 1
        nameservers = [params.get(f"nameserver{i}") for i in range(1, 5)]
        self._data["domains"].append(
            {
                "id": domain_id, "userid": client_id, "domainname": domain_name,
                "status": "Pending", "regdate": _day(0, self.now),
                "expirydate": _day(365 * period, self.now), "registrar": "",
                "firstpaymentamount": "10.99", "recurringamount": "10.99",
                "paymentmethodname": params.get("paymentmethod") or "",
                "nameservers": [ns for ns in nameservers if ns], "locked": True,
            }
        )
        return {
            "result": "success",
            "orderid": order_id,
            "invoiceid": invoice["invoiceid"],
            "serviceids": "",
            "domainids": str(domain_id),
        }
