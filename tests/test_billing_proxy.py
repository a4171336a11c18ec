import asyncio

import pytest

from app.errors import (
    AccessDenied,
    Conflict,
    DownstreamFailure,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from app.models.portal import ReplyAuthor, TicketStatus
from app.schemas.account import RegisterRequest
from app.schemas.domains import DomainConfiguration
from app.schemas.support import OpenTicketRequest
from app.services import billing_proxy
from app.services.auth_tokens import account_id_from_token
from app.services.whmcs import WhmcsError
from app.services.whmcs_memory import SAMPLE_EMAIL, SAMPLE_PASSWORD, InMemoryWhmcs


class _InFlightWhmcs(InMemoryWhmcs):
    """Tracks the largest number of billing calls awaiting at the same time."""

    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.peak = 0

    async def call(self, action, **params):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0)
            return await super().call(action, **params)
        finally:
            self.in_flight -= 1


@pytest.fixture()
def other_account(backend) -> str:
    # A second client owning its own domain, service and ticket
    backend._data["clients"][2] = {
        **backend._data["clients"][1],
        "id": 2,
        "email": "other@example.com",
    }
    backend._data["domains"].append(
        {
            **backend._data["domains"][0],
            "id": 290,
            "userid": 2,
            "domainname": "other.example",
        }
    )
    backend._data["services"].append({**backend._data["services"][0], "id": 190, "clientid": 2})
    backend._data["tickets"].append({**backend._data["tickets"][1], "id": 90, "userid": 2})
    return "2"


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_valid_credentials(self, backend):
        result = await billing_proxy.accounts.authenticate(backend, SAMPLE_EMAIL, SAMPLE_PASSWORD)
        assert result.user.id == "1"
        assert result.user.email == SAMPLE_EMAIL
        assert account_id_from_token(result.token) == "1"

    @pytest.mark.asyncio
    async def test_wrong_password_is_generic(self, backend):
        with pytest.raises(Unauthorized) as excinfo:
            await billing_proxy.accounts.authenticate(backend, SAMPLE_EMAIL, "wrong-password")
        assert excinfo.value.message == "Invalid credentials. Please try again."
        assert "password" not in excinfo.value.message.lower()

    @pytest.mark.asyncio
    async def test_unknown_email_gets_same_message(self, backend):
        with pytest.raises(Unauthorized) as excinfo:
            await billing_proxy.accounts.authenticate(backend, "nobody@example.com", "whatever")
        assert excinfo.value.message == "Invalid credentials. Please try again."

    @pytest.mark.asyncio
    async def test_missing_fields_do_not_reach_billing(self, backend):
        with pytest.raises(ValidationFailed):
            await billing_proxy.accounts.authenticate(backend, SAMPLE_EMAIL, "")
        assert backend.calls == []


class TestRegister:
    @staticmethod
    def _request(**overrides):
        fields = {
            "email": "new@example.com",
            "password": "longenough",
            "first_name": "Ada",
            "last_name": "Lovelace",
        }
        fields.update(overrides)
        return RegisterRequest(**fields)

    @pytest.mark.asyncio
    async def test_register_then_login(self, backend):
        result = await billing_proxy.accounts.register(backend, self._request())
        assert result.user_id == "2"
        login = await billing_proxy.accounts.authenticate(backend, "new@example.com", "longenough")
        assert login.user.first_name == "Ada"

    @pytest.mark.asyncio
    async def test_duplicate_email_is_conflict(self, backend):
        with pytest.raises(Conflict):
            await billing_proxy.accounts.register(backend, self._request(email=SAMPLE_EMAIL))

    @pytest.mark.asyncio
    async def test_short_password_is_rejected_before_call(self, backend):
        with pytest.raises(ValidationFailed, match="at least 8 characters"):
            await billing_proxy.accounts.register(backend, self._request(password="short"))
        assert backend.call_count("AddClient") == 0

    @pytest.mark.asyncio
    async def test_missing_name_is_rejected(self, backend):
        with pytest.raises(ValidationFailed):
            await billing_proxy.accounts.register(backend, self._request(last_name=None))


@pytest.mark.asyncio
async def test_unknown_account_is_not_found(backend):
    with pytest.raises(NotFound):
        await billing_proxy.accounts.get(backend, "999")


class TestServices:
    @pytest.mark.asyncio
    async def test_list_is_scoped_and_idempotent(self, backend, other_account):
        first = await billing_proxy.services.list(backend, "1")
        second = await billing_proxy.services.list(backend, "1")
        assert first == second
        assert {s.id for s in first} == {"101", "102", "103", "104"}
        assert all(s.account_id == "1" for s in first)

    @pytest.mark.asyncio
    async def test_detail_has_usage_and_sso_link(self, backend):
        service = await billing_proxy.services.get(backend, "1", "101")
        assert service.disk_usage_percent == 25.0
        assert service.bandwidth_usage_raw == "15360 GB / 102400 GB"
        assert service.control_panel_link.startswith("https://server1.example.net")

    @pytest.mark.asyncio
    async def test_sso_failure_leaves_link_empty(self, backend):
        service = await billing_proxy.services.get(backend, "1", "102")
        assert service.control_panel_link is None
        assert backend.call_count("CreateSsoToken") == 1

    @pytest.mark.asyncio
    async def test_unlimited_service_usage(self, backend):
        service = await billing_proxy.services.get(backend, "1", "103")
        assert service.disk_usage_raw == "N/A"
        assert service.disk_usage_percent == 0.0

    @pytest.mark.asyncio
    async def test_foreign_service_is_denied(self, backend, other_account):
        with pytest.raises(AccessDenied):
            await billing_proxy.services.get(backend, "1", "190")

    @pytest.mark.asyncio
    async def test_missing_service_is_not_found(self, backend):
        with pytest.raises(NotFound):
            await billing_proxy.services.get(backend, "1", "999")


class TestDomains:
    @pytest.mark.asyncio
    async def test_list_enriches_nameservers_and_lock(self, backend):
        domains = await billing_proxy.domains.list(backend, "1")
        by_id = {d.id: d for d in domains}
        assert by_id["201"].nameservers == ["ns1.snbdhost.com", "ns2.snbdhost.com"]
        assert by_id["201"].registrar_lock is True
        assert by_id["202"].registrar_lock is False
        assert domains == await billing_proxy.domains.list(backend, "1")

    @pytest.mark.asyncio
    async def test_list_bounds_concurrent_registrar_lookups(self):
        backend = _InFlightWhmcs()
        template = backend._data["domains"][0]
        for offset in range(12):
            backend._data["domains"].append(
                {**template, "id": 500 + offset, "domainname": f"site{offset}.example"}
            )

        domains = await billing_proxy.domains.list(backend, "1")

        assert len(domains) == 15
        assert backend.peak <= 2 * billing_proxy.DOMAIN_LOOKUP_CONCURRENCY

    @pytest.mark.asyncio
    async def test_update_nameservers(self, backend):
        await billing_proxy.domains.update_nameservers(
            backend, "1", "201", ["ns1.example.net", "ns2.example.net", ""]
        )
        domain = await billing_proxy.domains.get(backend, "1", "201")
        assert domain.nameservers == ["ns1.example.net", "ns2.example.net"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("nameservers", [[], ["ns1.example.net"], ["ns1.example.net", "  "]])
    async def test_fewer_than_two_nameservers_makes_no_call(self, backend, nameservers):
        with pytest.raises(ValidationFailed):
            await billing_proxy.domains.update_nameservers(backend, "1", "201", nameservers)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_update_lock(self, backend):
        result = await billing_proxy.domains.update_lock(backend, "1", "202", True)
        assert result.new_status.value == "Locked"
        domain = await billing_proxy.domains.get(backend, "1", "202")
        assert domain.registrar_lock is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, "true", 1])
    async def test_lock_requires_boolean(self, backend, value):
        with pytest.raises(ValidationFailed):
            await billing_proxy.domains.update_lock(backend, "1", "202", value)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_foreign_domain_is_denied(self, backend, other_account):
        with pytest.raises(AccessDenied):
            await billing_proxy.domains.get(backend, "1", "290")
        with pytest.raises(AccessDenied):
            await billing_proxy.domains.update_nameservers(
                backend, "1", "290", ["ns1.example.net", "ns2.example.net"]
            )
        assert backend.call_count("DomainUpdateNameservers") == 0

    @pytest.mark.asyncio
    async def test_missing_domain_is_not_found(self, backend):
        with pytest.raises(NotFound):
            await billing_proxy.domains.get(backend, "1", "999")

    @pytest.mark.asyncio
    async def test_check_availability(self, backend):
        taken = await billing_proxy.domains.check(backend, "mycoolwebsite.com")
        free = await billing_proxy.domains.check(backend, "brand-new.io")
        assert taken.status.value == "unavailable"
        assert free.status.value == "available"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "nodot", "bad_domain.com", "example.c0m"])
    async def test_check_rejects_malformed_names(self, backend, name):
        with pytest.raises(ValidationFailed):
            await billing_proxy.domains.check(backend, name)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_place_order(self, backend):
        result = await billing_proxy.domains.place_order(
            backend,
            "1",
            DomainConfiguration(domain_name="brand-new.io", registration_period=2),
        )
        assert result.orderid == "555"
        assert result.invoice_url.endswith(f"/viewinvoice.php?id={result.invoiceid}")
        _, params = backend.calls[-1]
        assert params["paymentmethod"] == "paypal"
        assert params["regperiod[0]"] == 2

    @pytest.mark.asyncio
    async def test_order_requires_name_and_period(self, backend):
        with pytest.raises(ValidationFailed):
            await billing_proxy.domains.place_order(
                backend, "1", DomainConfiguration(domain_name="brand-new.io")
            )
        assert backend.calls == []


class TestBilling:
    @pytest.mark.asyncio
    async def test_invoices_with_status_filter(self, backend):
        all_invoices = await billing_proxy.invoices.list(backend, "1")
        unpaid = await billing_proxy.invoices.list(backend, "1", "unpaid")
        assert len(all_invoices) == 4
        assert [i.id for i in unpaid] == ["302"]

    @pytest.mark.asyncio
    async def test_invoice_list_is_idempotent(self, backend):
        first = await billing_proxy.invoices.list(backend, "1")
        assert first == await billing_proxy.invoices.list(backend, "1")
        assert backend.call_count("GetInvoices") == 2

    @pytest.mark.asyncio
    async def test_unknown_invoice_status_is_rejected(self, backend):
        with pytest.raises(ValidationFailed):
            await billing_proxy.invoices.list(backend, "1", "Lost")

    @pytest.mark.asyncio
    async def test_payment_methods_are_idempotent(self, backend):
        first = await billing_proxy.payments.methods(backend)
        assert [m.module for m in first] == ["paypal", "stripe", "banktransfer"]
        assert first == await billing_proxy.payments.methods(backend)

    @pytest.mark.asyncio
    async def test_add_funds(self, backend):
        result = await billing_proxy.payments.add_funds(backend, "1", 25, "stripe")
        assert result.invoice_id == "400"
        assert result.payment_url.endswith("/viewinvoice.php?id=400")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "amount", [0, -5, -0.01, None, "10", True, float("nan"), float("inf"), float("-inf")]
    )
    async def test_add_funds_rejects_bad_amount_before_call(self, backend, amount):
        with pytest.raises(ValidationFailed, match="Invalid amount"):
            await billing_proxy.payments.add_funds(backend, "1", amount, "paypal")
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_add_funds_requires_method(self, backend):
        with pytest.raises(ValidationFailed, match="Payment method is required"):
            await billing_proxy.payments.add_funds(backend, "1", 10, " ")
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_invalid_method_surfaces_billing_message(self, backend):
        with pytest.raises(DownstreamFailure) as excinfo:
            await billing_proxy.payments.add_funds(backend, "1", 10, "bitcoin")
        assert excinfo.value.safe
        assert excinfo.value.public_message.startswith("Invalid Payment Method")


class TestTickets:
    @pytest.mark.asyncio
    async def test_open_then_fetch(self, backend):
        opened = await billing_proxy.tickets.open(
            backend,
            "1",
            OpenTicketRequest(
                subject="A", department="Technical Support", message="B", priority="Medium"
            ),
        )
        assert opened.ticket_id
        ticket = await billing_proxy.tickets.get(backend, "1", opened.ticket_id)
        assert ticket.ticket_number == opened.ticket_number
        assert ticket.department == "Technical Support"
        assert len(ticket.replies) == 1
        assert ticket.replies[0].author == ReplyAuthor.client
        assert ticket.replies[0].message == "B"

    @pytest.mark.asyncio
    async def test_open_requires_fields(self, backend):
        with pytest.raises(ValidationFailed):
            await billing_proxy.tickets.open(
                backend, "1", OpenTicketRequest(subject="A", department="Sales")
            )
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_open_rejects_unknown_department(self, backend):
        with pytest.raises(ValidationFailed, match="Unknown support department"):
            await billing_proxy.tickets.open(
                backend,
                "1",
                OpenTicketRequest(subject="A", department="Legal", message="B"),
            )
        assert backend.call_count("OpenTicket") == 0

    @pytest.mark.asyncio
    async def test_reply_appends_client_reply(self, backend):
        reply = await billing_proxy.tickets.reply(backend, "1", "1", "Still slow")
        assert reply.author == ReplyAuthor.client
        ticket = await billing_proxy.tickets.get(backend, "1", "1")
        assert ticket.replies[-1].message == "Still slow"
        assert ticket.status == TicketStatus.customer_reply

    @pytest.mark.asyncio
    async def test_empty_reply_is_rejected(self, backend):
        with pytest.raises(ValidationFailed, match="cannot be empty"):
            await billing_proxy.tickets.reply(backend, "1", "1", "   ")
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_ticket_status_filters(self, backend):
        everything = await billing_proxy.tickets.list(backend, "1")
        active = await billing_proxy.tickets.list(backend, "1", "All Active")
        closed = await billing_proxy.tickets.list(backend, "1", "closed")
        assert len(everything) == 3
        assert {t.id for t in active} == {"1", "3"}
        assert [t.id for t in closed] == ["2"]

    @pytest.mark.asyncio
    async def test_ticket_list_is_idempotent(self, backend):
        first = await billing_proxy.tickets.list(backend, "1", "All Active")
        assert first == await billing_proxy.tickets.list(backend, "1", "All Active")

    @pytest.mark.asyncio
    async def test_foreign_ticket_is_denied(self, backend, other_account):
        with pytest.raises(AccessDenied):
            await billing_proxy.tickets.get(backend, "1", "90")
        with pytest.raises(AccessDenied):
            await billing_proxy.tickets.reply(backend, "1", "90", "hello")
        assert backend.call_count("AddTicketReply") == 0

    @pytest.mark.asyncio
    async def test_missing_ticket_is_not_found(self, backend):
        with pytest.raises(NotFound):
            await billing_proxy.tickets.get(backend, "1", "999")


class TestCatalog:
    @pytest.mark.asyncio
    async def test_products_by_group(self, backend):
        shared = await billing_proxy.catalog.products(backend, "1")
        assert [p.pid for p in shared] == ["1", "2"]
        assert shared[0].parsed_pricing_cycles[0].display_price == "$5.00 USD"

    @pytest.mark.asyncio
    async def test_product_list_is_idempotent(self, backend):
        first = await billing_proxy.catalog.products(backend)
        assert first
        assert first == await billing_proxy.catalog.products(backend)

    @pytest.mark.asyncio
    async def test_groups_from_primary_source(self, backend):
        listing = await billing_proxy.catalog.product_groups(backend)
        assert listing.source == billing_proxy.GROUPS_SOURCE_PRIMARY
        assert [g.name for g in listing.groups][:1] == ["Shared Hosting"]
        assert listing.all_products is None

    @pytest.mark.asyncio
    async def test_groups_derived_when_primary_unavailable(self):
        backend = InMemoryWhmcs(product_groups_enabled=False)
        listing = await billing_proxy.catalog.product_groups(backend)
        assert listing.source == billing_proxy.GROUPS_SOURCE_DERIVED
        assert [(g.id, g.name) for g in listing.groups] == [
            ("1", "Shared Hosting"),
            ("2", "Reseller Hosting"),
            ("3", "VPS Servers"),
        ]
        assert len(listing.all_products) == 4


@pytest.mark.asyncio
async def test_unexpected_billing_error_is_downstream_failure(backend):
    def _broken(params):
        raise WhmcsError("Invalid API credentials")

    backend._handlers["GetInvoices"] = _broken
    with pytest.raises(DownstreamFailure) as excinfo:
        await billing_proxy.invoices.list(backend, "1")
    assert not excinfo.value.safe
    assert "billing system" in excinfo.value.public_message
