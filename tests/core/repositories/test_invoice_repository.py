"""Tests for InvoiceRepository SQL behaviour against a mock PostgresClient."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from psycopg2 import errors as pg_errors

from core.exceptions import DuplicateInvoiceNumberError
from core.repositories import InvoiceRepository
from core.repositories.invoice_repository import parse_id
from utils.timezone import current_year


def invoice_row(**overrides) -> dict:
    now = datetime(2026, 3, 5, tzinfo=timezone.utc)
    row = {
        "id": uuid4(),
        "invoice_number": "INV-2026-1001",
        "title": "Tax Invoice",
        "issue_date": date(2026, 3, 5),
        "due_date": None,
        "business_name": "Encore Entertainment",
        "abn": "51824753556",
        "business_address": None,
        "client_id": None,
        "client_name": "Jordan Lee",
        "client_address": None,
        "client_email": None,
        "items": [{"description": "Ceremony", "quantity": 1, "unit_price": 110.0, "tax_included": True}],
        "tax_rate": Decimal("0.1000"),
        "subtotal": Decimal("100.00"),
        "tax_amount": Decimal("10.00"),
        "total": Decimal("110.00"),
        "payment_terms": None,
        "notes": None,
        "status": "draft",
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


@pytest.fixture
def repo(storage):
    return InvoiceRepository(storage)


class TestParseId:

    def test_valid_uuid(self):
        uid = uuid4()
        assert parse_id(str(uid)) == uid
        assert parse_id(uid) is uid

    @pytest.mark.parametrize("value", ["", "42", "not-a-uuid", "507f1f77bcf86cd799439011"])
    def test_invalid_returns_none(self, value):
        assert parse_id(value) is None


class TestMalformedIds:
    """Malformed ids behave as not found without touching the database."""

    def test_get_by_id(self, repo, pg_client):
        assert repo.get_by_id("nope") is None
        pg_client.execute_single.assert_not_called()

    def test_update(self, repo, pg_client):
        assert repo.update("nope", {"notes": "x"}) is None
        pg_client.execute_returning.assert_not_called()

    def test_delete(self, repo, pg_client):
        assert repo.delete("nope") is False
        pg_client.execute_returning.assert_not_called()

    def test_list_for_client(self, repo, pg_client):
        assert repo.list_for_client("nope") == []
        pg_client.execute.assert_not_called()


class TestCreate:

    def test_inserts_and_returns_invoice(self, repo, pg_client):
        row = invoice_row()
        pg_client.execute_returning.return_value = [row]

        invoice = repo.create({k: v for k, v in row.items() if k not in ("id", "created_at", "updated_at")})

        query, params = pg_client.execute_returning.call_args.args
        assert query.strip().startswith("INSERT INTO invoices")
        assert "RETURNING *" in query
        assert params[1] == "INV-2026-1001"
        assert invoice.id == row["id"]
        assert invoice.items[0].unit_price == Decimal("110")

    def test_unique_violation_becomes_duplicate_error(self, repo, pg_client):
        pg_client.execute_returning.side_effect = pg_errors.UniqueViolation("duplicate key")

        with pytest.raises(DuplicateInvoiceNumberError) as exc_info:
            repo.create(invoice_row())

        assert exc_info.value.invoice_number == "INV-2026-1001"
        assert exc_info.value.status_code == 409


class TestReads:

    def test_get_by_id_missing(self, repo, pg_client):
        pg_client.execute_single.return_value = None

        assert repo.get_by_id(uuid4()) is None

    def test_list_all_sorted_by_issue_date_desc(self, repo, pg_client):
        pg_client.execute.return_value = [invoice_row(), invoice_row(invoice_number="INV-2026-1002")]

        invoices = repo.list_all()

        query = pg_client.execute.call_args.args[0]
        assert "ORDER BY issue_date DESC" in query
        assert len(invoices) == 2

    def test_list_for_client_filters(self, repo, pg_client):
        client_id = uuid4()

        repo.list_for_client(str(client_id))

        query, params = pg_client.execute.call_args.args
        assert "WHERE client_id = %s" in query
        assert params == (client_id,)


class TestUpdate:

    def test_sets_only_known_columns(self, repo, pg_client):
        invoice_id = uuid4()
        pg_client.execute_returning.return_value = [invoice_row(id=invoice_id, notes="Paid")]

        invoice = repo.update(invoice_id, {"notes": "Paid", "bogus": 1})

        query, params = pg_client.execute_returning.call_args.args
        assert "notes = %s" in query
        assert "bogus" not in query
        assert "updated_at = %s" in query
        assert params[0] == "Paid"
        assert params[-1] == invoice_id
        assert invoice.notes == "Paid"

    def test_missing_row_returns_none(self, repo, pg_client):
        pg_client.execute_returning.return_value = []

        assert repo.update(uuid4(), {"notes": "x"}) is None


class TestDelete:

    def test_returns_true_when_deleted(self, repo, pg_client):
        pg_client.execute_returning.return_value = [{"id": uuid4()}]

        assert repo.delete(uuid4()) is True

    def test_returns_false_when_absent(self, repo, pg_client):
        pg_client.execute_returning.return_value = []

        assert repo.delete(uuid4()) is False


class TestNextInvoiceNumber:

    def test_first_of_year(self, repo, pg_client):
        pg_client.execute_single.return_value = None

        assert repo.next_invoice_number(2026) == "INV-2026-1001"

    def test_follows_latest_created(self, repo, pg_client):
        pg_client.execute_single.return_value = {"invoice_number": "INV-2026-1041"}

        assert repo.next_invoice_number(2026) == "INV-2026-1042"
        query = pg_client.execute_single.call_args.args[0]
        assert "ORDER BY created_at DESC" in query

    def test_defaults_to_current_year(self, repo, pg_client):
        pg_client.execute_single.return_value = None

        assert repo.next_invoice_number() == f"INV-{current_year()}-1001"
