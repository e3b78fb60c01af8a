from decimal import Decimal

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from brickbook.customers.schemas import CustomerCreate, CustomerUpdate
from brickbook.customers.services import CustomerServices
from brickbook.sales.schemas import SaleInput
from brickbook.sales.services import SaleServices


customer_services = CustomerServices()


async def test_new_customer_starts_with_no_advance(session, user, user_id):
    customer = await customer_services.create_customer(
        CustomerCreate(name="Sharma Constructions", phone="9811122233"), session, user_id
    )

    assert customer.advance_balance == Decimal("0")
    assert customer.user_id == user.user_id


@pytest.mark.parametrize("payload, field", [
    ({"name": "sharma constructions"}, "name"),
    ({"name": "Someone Else", "phone": "9811122233"}, "phone number"),
    ({"name": "Someone Else", "email": "ACCOUNTS@SHARMA.IN"}, "email"),
])
async def test_duplicate_customer_is_rejected(session, user, user_id, payload, field):
    await customer_services.create_customer(
        CustomerCreate(name="Sharma Constructions", phone="9811122233", email="accounts@sharma.in"),
        session, user_id
    )

    with pytest.raises(HTTPException) as exc:
        await customer_services.create_customer(CustomerCreate(**payload), session, user_id)

    assert exc.value.status_code == 409
    assert exc.value.detail == f"Customer with this {field} already exists"


async def test_same_name_is_fine_for_a_different_dealer(session, user, user_id, other_user):
    await customer_services.create_customer(CustomerCreate(name="Sharma Constructions"), session, user_id)
    other = await customer_services.create_customer(
        CustomerCreate(name="Sharma Constructions"), session, str(other_user.user_id)
    )
    assert other.user_id == other_user.user_id


async def test_customer_list_carries_outstanding_due(session, user, user_id, make_customer, make_sale):
    owing = await make_customer(user, name="Owing")
    await make_customer(user, name="Clear")
    await make_sale(user, owing, total="1000", paid="250")
    await make_sale(user, owing, total="500")

    customers = {c["name"]: c for c in await customer_services.get_all_customers(session, user_id)}

    assert customers["Owing"]["due_amount"] == Decimal("1250")
    assert customers["Clear"]["due_amount"] == Decimal("0")


async def test_update_needs_at_least_one_field(session, user, user_id, make_customer):
    customer = await make_customer(user)

    with pytest.raises(HTTPException) as exc:
        await customer_services.update_customer(customer.id, CustomerUpdate(), session, user_id)
    assert exc.value.status_code == 400


async def test_update_changes_contact_details(session, user, user_id, make_customer):
    customer = await make_customer(user, phone="9000000001")

    updated = await customer_services.update_customer(
        customer.id, CustomerUpdate(address="Ring Road, Nagpur"), session, user_id
    )

    assert updated.address == "Ring Road, Nagpur"
    assert updated.phone == "9000000001"


async def test_customer_with_sales_cannot_be_deleted(session, user, user_id, make_customer, make_sale):
    customer = await make_customer(user)
    await make_sale(user, customer, total="100", paid="100")

    with pytest.raises(HTTPException) as exc:
        await customer_services.delete_customer(customer.id, session, user_id)
    assert exc.value.status_code == 409


async def test_customer_holding_advance_cannot_be_deleted(session, user, user_id, make_customer):
    customer = await make_customer(user, advance="50")

    with pytest.raises(HTTPException) as exc:
        await customer_services.delete_customer(customer.id, session, user_id)
    assert exc.value.status_code == 409


async def test_unused_customer_can_be_deleted(session, user, user_id, make_customer):
    customer = await make_customer(user)

    assert await customer_services.delete_customer(customer.id, session, user_id) is True

    with pytest.raises(HTTPException) as exc:
        await customer_services.get_customer_by_id(customer.id, session, user_id)
    assert exc.value.status_code == 404


async def test_other_dealers_customer_is_not_found(session, user, other_user, make_customer):
    customer = await make_customer(user)

    with pytest.raises(HTTPException) as exc:
        await customer_services.get_customer_by_id(customer.id, session, str(other_user.user_id))
    assert exc.value.status_code == 404


def test_update_cannot_clear_the_name():
    with pytest.raises(ValidationError):
        CustomerUpdate(name=None)

    assert CustomerUpdate(phone="9000000002").model_dump(exclude_unset=True) == {"phone": "9000000002"}


async def _two_sales(session, customer, user_id):
    sale_services = SaleServices()
    await sale_services.create_sale(
        SaleInput(
            customer_id=customer.id,
            items=[
                {"product_type": "Red bricks", "quantity": "1000", "unit_price": "8"},
                {"product_type": "Fly ash bricks", "quantity": "500", "unit_price": "6"},
            ],
            paid_amount=Decimal("11000"),
        ),
        session, user_id
    )
    await sale_services.create_sale(
        SaleInput(
            customer_id=customer.id,
            items=[{"product_type": "Red bricks", "quantity": "500", "unit_price": "8"}],
            paid_amount=Decimal("1000"),
        ),
        session, user_id
    )


async def test_customer_stats_sum_every_sale(session, user, user_id, make_customer):
    customer = await make_customer(user)
    await _two_sales(session, customer, user_id)

    stats = await customer_services.get_customer_stats(customer.id, session, user_id)

    assert stats["total_sales"] == 2
    assert stats["total_amount"] == Decimal("15000")
    assert stats["total_paid"] == Decimal("12000")
    assert stats["due_amount"] == Decimal("3000")
    assert len(stats["recent_purchases"]) == 2


async def test_customer_stats_for_a_customer_without_sales(session, user, user_id, make_customer):
    customer = await make_customer(user)

    stats = await customer_services.get_customer_stats(customer.id, session, user_id)

    assert stats["total_sales"] == 0
    assert stats["total_amount"] == Decimal("0")
    assert stats["recent_purchases"] == []


async def test_customer_overview_breaks_down_products_and_statuses(session, user, user_id, make_customer):
    customer = await make_customer(user)
    await _two_sales(session, customer, user_id)

    overview = await customer_services.get_customer_overview(customer.id, session, user_id)

    statistics = overview["statistics"]
    assert statistics["total_sale_amount"] == Decimal("15000")
    assert statistics["total_due_amount"] == Decimal("3000")
    assert statistics["total_quantity"] == Decimal("2000")
    assert statistics["payment_completion_rate"] == 80
    assert statistics["average_sale_value"] == Decimal("7500.00")

    assert [(p["product_type"], p["quantity"], p["percentage"]) for p in overview["product_types"]] == [
        ("Red bricks", Decimal("1500"), 75.0),
        ("Fly ash bricks", Decimal("500"), 25.0),
    ]
    assert overview["summary"] == {"fully_paid_sales": 1, "partial_sales": 1, "pending_sales": 0}
    assert overview["customer"].id == customer.id


async def test_customer_overview_of_another_dealer_is_not_found(session, user, other_user, make_customer):
    customer = await make_customer(user)

    with pytest.raises(HTTPException) as exc:
        await customer_services.get_customer_overview(customer.id, session, str(other_user.user_id))
    assert exc.value.status_code == 404
