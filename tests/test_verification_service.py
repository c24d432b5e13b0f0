from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from pymongo.errors import PyMongoError

from storefront.services.payment.verification_service import VerificationService


@pytest.fixture
def service(mock_db):
    return VerificationService(mock_db)


def pending_record(**overrides):
    record = {
        "_id": "64f000000000000000000001",
        "verification_id": "TV_1",
        "order_id": "O1",
        "payment_gateway": "bkash",
        "transaction_id": "TXN123",
        "amount": 750.0,
        "status": "pending",
    }
    record.update(overrides)
    return record


async def test_submit_creates_pending_record(service, mock_db):
    verification_id = await service.submit_transaction("O1", "bkash", " TXN123 ", Decimal("750.00"))

    document = mock_db.transaction_verifications.insert_one.call_args.args[0]
    assert verification_id.startswith("TV_")
    assert document["verification_id"] == verification_id
    assert document["status"] == "pending"
    assert document["amount"] == 750.0
    assert document["transaction_id"] == "TXN123"


async def test_submit_store_failure_returns_none(service, mock_db):
    mock_db.transaction_verifications.insert_one.side_effect = PyMongoError("down")

    assert await service.submit_transaction("O1", "bkash", "TXN123", Decimal("750")) is None


async def test_advance_payment_record(service, mock_db):
    advance_id = await service.create_advance_payment("O1", Decimal("100"), "bkash", "ADV100")

    document = mock_db.advance_payments.insert_one.call_args.args[0]
    assert advance_id.startswith("ADV_")
    assert document["amount"] == 100.0
    assert document["payment_method"] == "bkash"
    assert document["payment_status"] == "pending"


async def test_approval_marks_order_paid(service, mock_db):
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=1)
    mock_db.transaction_verifications.find_one.return_value = pending_record(status="verified")
    mock_db.orders.find_one.return_value = {"order_id": "O1", "payment_method": "bkash"}

    success, message, record = await service.review_transaction("TV_1", approve=True, reviewer="admin")

    query, update = mock_db.transaction_verifications.update_one.call_args.args
    assert success
    assert record["status"] == "verified"
    assert query == {"verification_id": "TV_1", "status": "pending"}
    assert update["$set"]["reviewed_by"] == "admin"

    order_update = mock_db.orders.update_one.call_args.args[1]
    assert order_update["$set"]["payment_status"] == "paid"


async def test_cod_approval_marks_advance_paid_only(service, mock_db):
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=1)
    mock_db.transaction_verifications.find_one.return_value = pending_record(status="verified")
    mock_db.orders.find_one.return_value = {"order_id": "O1", "payment_method": "cod"}

    await service.review_transaction("TV_1", approve=True, reviewer="admin")

    mock_db.advance_payments.update_many.assert_awaited_once()
    order_update = mock_db.orders.update_one.call_args.args[1]
    assert order_update["$set"]["advance_paid"] is True
    assert "payment_status" not in order_update["$set"]


async def test_rejection_leaves_order_pending(service, mock_db):
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=1)
    mock_db.transaction_verifications.find_one.return_value = pending_record(status="rejected")

    success, _, record = await service.review_transaction(
        "TV_1", approve=False, reviewer="auto:binance_pay", note="amount mismatch"
    )

    update = mock_db.transaction_verifications.update_one.call_args.args[1]
    assert success
    assert update["$set"]["status"] == "rejected"
    assert update["$set"]["review_note"] == "amount mismatch"
    mock_db.orders.update_one.assert_not_called()


async def test_first_terminal_write_wins(service, mock_db):
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=0)
    mock_db.transaction_verifications.find_one.return_value = pending_record(status="verified")

    success, message, record = await service.review_transaction("TV_1", approve=False, reviewer="admin")

    assert not success
    assert message == "Verification already verified"
    assert record["status"] == "verified"
    mock_db.orders.update_one.assert_not_called()


async def test_review_unknown_verification(service, mock_db):
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=0)

    success, message, record = await service.review_transaction("TV_X", approve=True, reviewer="admin")

    assert not success
    assert message == "Verification not found"
    assert record is None


async def test_flag_overdue_reviews(service, mock_db):
    mock_db.transaction_verifications.cursor.to_list.return_value = [
        {"verification_id": "TV_1", "order_id": "O1"},
        {"verification_id": "TV_2", "order_id": "O1"},
    ]
    mock_db.orders.update_many.return_value = MagicMock(modified_count=1)

    result = await service.flag_overdue_reviews(sla_hours=24)

    flagged_query = mock_db.transaction_verifications.update_many.call_args.args[0]
    assert result == {"processed": 2, "orders_flagged": 1}
    assert flagged_query == {"verification_id": {"$in": ["TV_1", "TV_2"]}}
    assert mock_db.orders.update_many.call_args.args[0]["order_id"] == {"$in": ["O1"]}


async def test_nothing_overdue(service, mock_db):
    result = await service.flag_overdue_reviews(sla_hours=24)

    assert result == {"processed": 0, "orders_flagged": 0}
    mock_db.transaction_verifications.update_many.assert_not_called()


async def test_list_verifications_paginates(service, mock_db):
    mock_db.transaction_verifications.count_documents.return_value = 45
    mock_db.transaction_verifications.cursor.to_list.return_value = [pending_record()]

    records, pagination = await service.list_verifications(status="pending", page=2, limit=20)

    mock_db.transaction_verifications.find.assert_called_once_with({"status": "pending"})
    mock_db.transaction_verifications.cursor.skip.assert_called_once_with(20)
    assert pagination == {"total": 45, "page": 2, "limit": 20, "total_pages": 3}
    assert records[0]["verification_id"] == "TV_1"
