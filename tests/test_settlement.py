from decimal import Decimal
import uuid

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlmodel import select

from brickbook.advance.models import AdvancePayment, AdvanceType
from brickbook.dues.schemas import AdvanceDeductionInput
from brickbook.dues.services import DueServices
from brickbook.payments.models import Payment, PaymentMethod
from brickbook.sales.models import SaleStatus
from brickbook.utils.errors import InsufficientBalance, ExcessPayment


due_services = DueServices()


def deduction(sale, customer, amount, **extra):
    return AdvanceDeductionInput(sale_id=sale.id, customer_id=customer.id, amount=Decimal(amount), **extra)


async def reload(session, *objs):
    for obj in objs:
        await session.refresh(obj)


async def test_partial_settlement_moves_money_between_all_four_records(session, user, user_id, make_customer, make_sale, ledger_total):
    customer = await make_customer(user, advance="1000")
    sale = await make_sale(user, customer, total="2000", paid="500")
    assert sale.status == SaleStatus.PARTIAL

    result = await due_services.apply_advance_to_due(deduction(sale, customer, "1000"), session, user_id)
    await reload(session, customer, sale)

    assert customer.advance_balance == Decimal("0")
    assert sale.paid_amount == Decimal("1500")
    assert sale.due_amount == Decimal("500")
    assert sale.status == SaleStatus.PARTIAL

    entry = result["data"]["advance_payment"]
    assert entry.amount == Decimal("-1000")
    assert entry.type == AdvanceType.ADVANCE_USED
    assert entry.sale_id == sale.id

    payment = result["data"]["payment"]
    assert payment.amount == Decimal("1000")
    assert payment.method == PaymentMethod.ADVANCE_DEDUCTION
    assert payment.advance_payment_id == entry.id
    assert payment.reference_number == f"ADV_{str(entry.id)[-8:]}"

    assert result["summary"] == {
        "amount_deducted": Decimal("1000"),
        "remaining_advance": customer.advance_balance,
        "remaining_due": sale.due_amount,
        "new_status": SaleStatus.PARTIAL,
    }
    assert await ledger_total(customer) == customer.advance_balance


async def test_settling_the_exact_due_marks_the_sale_paid(session, user, user_id, make_customer, make_sale):
    customer = await make_customer(user, advance="2000")
    sale = await make_sale(user, customer, total="2000", paid="500")

    result = await due_services.apply_advance_to_due(deduction(sale, customer, "1500"), session, user_id)
    await reload(session, customer, sale)

    assert sale.due_amount == Decimal("0")
    assert sale.paid_amount == sale.total_amount
    assert sale.status == SaleStatus.PAID
    assert customer.advance_balance == Decimal("500")
    assert result["summary"]["new_status"] == SaleStatus.PAID


async def test_insufficient_balance_leaves_everything_untouched(session, user, user_id, make_customer, make_sale, ledger_total):
    customer = await make_customer(user, advance="300")
    sale = await make_sale(user, customer, total="2000", paid="500")

    with pytest.raises(InsufficientBalance) as exc:
        await due_services.apply_advance_to_due(deduction(sale, customer, "500"), session, user_id)

    assert exc.value.status_code == 400
    assert exc.value.extra == {"available_balance": "300.00", "required_amount": "500"}

    await reload(session, customer, sale)
    assert customer.advance_balance == Decimal("300")
    assert sale.paid_amount == Decimal("500")
    assert sale.due_amount == Decimal("1500")
    assert await ledger_total(customer) == Decimal("300")

    used = (await session.exec(
        select(AdvancePayment).where(AdvancePayment.type == AdvanceType.ADVANCE_USED)
    )).all()
    assert used == []


async def test_overpaying_a_due_is_rejected_not_clamped(session, user, user_id, make_customer, make_sale, ledger_total):
    customer = await make_customer(user, advance="5000")
    sale = await make_sale(user, customer, total="2000", paid="500")

    with pytest.raises(ExcessPayment) as exc:
        await due_services.apply_advance_to_due(deduction(sale, customer, "1600"), session, user_id)

    assert exc.value.due_amount == Decimal("1500")
    assert exc.value.payment_amount == Decimal("1600")

    await reload(session, customer, sale)
    assert customer.advance_balance == Decimal("5000")
    assert sale.due_amount == Decimal("1500")
    assert sale.status == SaleStatus.PARTIAL
    assert await ledger_total(customer) == Decimal("5000")

    deductions = (await session.exec(
        select(Payment).where(Payment.method == PaymentMethod.ADVANCE_DEDUCTION)
    )).all()
    assert deductions == []


async def test_repeated_settlements_conserve_the_balance(session, user, user_id, make_customer, make_sale, ledger_total):
    customer = await make_customer(user, advance="1000")
    first = await make_sale(user, customer, total="600")
    second = await make_sale(user, customer, total="900", paid="100")

    amounts = [("150.50", first), ("200", second), ("449.50", first)]
    for amount, sale in amounts:
        await due_services.apply_advance_to_due(deduction(sale, customer, amount), session, user_id)

    await reload(session, customer, first, second)

    applied = sum(Decimal(a) for a, _ in amounts)
    assert customer.advance_balance == Decimal("1000") - applied
    assert await ledger_total(customer) == customer.advance_balance

    for sale in (first, second):
        assert sale.due_amount >= 0
        assert sale.paid_amount + sale.due_amount == sale.total_amount

    assert first.status == SaleStatus.PAID
    assert second.status == SaleStatus.PARTIAL


async def test_retry_without_key_is_revalidated_against_new_state(session, user, user_id, make_customer, make_sale):
    customer = await make_customer(user, advance="1500")
    sale = await make_sale(user, customer, total="2000", paid="500")

    await due_services.apply_advance_to_due(deduction(sale, customer, "1500"), session, user_id)

    # The first call consumed the whole due, so the retry cannot apply again
    with pytest.raises(InsufficientBalance):
        await due_services.apply_advance_to_due(deduction(sale, customer, "1500"), session, user_id)

    await reload(session, customer, sale)
    assert customer.advance_balance == Decimal("0")
    assert sale.paid_amount == Decimal("2000")


async def test_idempotency_key_replays_the_first_result(session, user, user_id, make_customer, make_sale, ledger_total):
    customer = await make_customer(user, advance="3000")
    sale = await make_sale(user, customer, total="2000", paid="500")

    first = await due_services.apply_advance_to_due(deduction(sale, customer, "400"), session, user_id, "req-1")
    second = await due_services.apply_advance_to_due(deduction(sale, customer, "400"), session, user_id, "req-1")

    assert second["data"]["advance_payment"].id == first["data"]["advance_payment"].id
    assert second["data"]["payment"].id == first["data"]["payment"].id

    await reload(session, customer, sale)
    assert customer.advance_balance == Decimal("2600")
    assert sale.due_amount == Decimal("1100")
    assert await ledger_total(customer) == Decimal("2600")


async def test_idempotency_key_reused_for_another_request_conflicts(session, user, user_id, make_customer, make_sale):
    customer = await make_customer(user, advance="3000")
    sale = await make_sale(user, customer, total="2000", paid="500")

    await due_services.apply_advance_to_due(deduction(sale, customer, "400"), session, user_id, "req-1")

    with pytest.raises(HTTPException) as exc:
        await due_services.apply_advance_to_due(deduction(sale, customer, "250"), session, user_id, "req-1")
    assert exc.value.status_code == 409


async def test_idempotency_key_committed_while_waiting_on_locks_is_replayed(session, user, user_id, make_customer, make_sale, monkeypatch):
    customer = await make_customer(user, advance="1500")
    sale = await make_sale(user, customer, total="2000", paid="500")

    first = await due_services.apply_advance_to_due(deduction(sale, customer, "1500"), session, user_id, "k1")

    # The duplicate checked for the key before the first request committed
    services = DueServices()
    real_find = services._find_by_key
    calls = []

    async def miss_first_lookup(session, scoped_key):
        calls.append(scoped_key)
        if len(calls) == 1:
            return None
        return await real_find(session, scoped_key)

    monkeypatch.setattr(services, "_find_by_key", miss_first_lookup)

    second = await services.apply_advance_to_due(deduction(sale, customer, "1500"), session, user_id, "k1")

    assert len(calls) == 2
    assert second["data"]["payment"].id == first["data"]["payment"].id
    assert second["message"] == "Advance deduction already applied"

    await reload(session, customer, sale)
    assert customer.advance_balance == Decimal("0")
    assert sale.paid_amount == Decimal("2000")


def test_malformed_date_is_rejected():
    with pytest.raises(ValidationError):
        AdvanceDeductionInput(sale_id=uuid.uuid4(), customer_id=uuid.uuid4(), amount=Decimal("10"), date="15th of March")


async def test_sale_must_belong_to_the_named_customer(session, user, user_id, make_customer, make_sale):
    owner = await make_customer(user, name="Owner", advance="1000")
    bystander = await make_customer(user, name="Bystander", advance="1000")
    sale = await make_sale(user, owner, total="2000")

    with pytest.raises(HTTPException) as exc:
        await due_services.apply_advance_to_due(deduction(sale, bystander, "100"), session, user_id)
    assert exc.value.status_code == 404
    assert exc.value.detail == "Sale not found"

    await reload(session, bystander)
    assert bystander.advance_balance == Decimal("1000")


async def test_other_dealers_cannot_settle_my_sales(session, user, other_user, make_customer, make_sale):
    customer = await make_customer(user, advance="1000")
    sale = await make_sale(user, customer, total="2000")

    with pytest.raises(HTTPException) as exc:
        await due_services.apply_advance_to_due(deduction(sale, customer, "100"), session, str(other_user.user_id))
    assert exc.value.status_code == 404


async def test_unknown_user_is_unauthorized(session, user, make_customer, make_sale):
    customer = await make_customer(user, advance="1000")
    sale = await make_sale(user, customer, total="2000")

    with pytest.raises(HTTPException) as exc:
        await due_services.apply_advance_to_due(deduction(sale, customer, "100"), session, str(uuid.uuid4()))
    assert exc.value.status_code == 401


async def test_supplied_date_is_stored_on_the_ledger_entry(session, user, user_id, make_customer, make_sale):
    customer = await make_customer(user, advance="1000")
    sale = await make_sale(user, customer, total="2000")

    result = await due_services.apply_advance_to_due(
        deduction(sale, customer, "100", date="2026-03-15T10:30:00", description="Part payment"),
        session, user_id
    )

    entry = result["data"]["advance_payment"]
    assert entry.date.year == 2026 and entry.date.month == 3 and entry.date.day == 15
    assert entry.description == "Part payment"


async def test_dues_list_only_open_sales(session, user, user_id, make_customer, make_sale):
    customer = await make_customer(user, phone="9876543210")
    open_sale = await make_sale(user, customer, total="2000", paid="500")
    await make_sale(user, customer, total="700", paid="700")

    dues = await due_services.get_dues(session, user_id)

    assert [d["sale_id"] for d in dues] == [open_sale.id]
    assert dues[0]["due_amount"] == Decimal("1500")
    assert dues[0]["customer_phone"] == "9876543210"
    assert dues[0]["days_overdue"] == 0
