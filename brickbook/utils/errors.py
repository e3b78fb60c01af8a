"""Business-rule errors.

These are raised by the service layer when a request is well formed but
would break a money invariant (spending more advance than the customer has,
paying more than a sale owes). They are ordinary ``HTTPException`` objects so
the routes need no special handling; the extra diagnostic fields are merged
into the JSON error body by the application's exception handler.
"""

from decimal import Decimal

from fastapi import HTTPException, status


class BusinessRuleError(HTTPException):
    """An ``HTTPException`` that carries diagnostic fields for the client."""

    def __init__(self, detail: str, extra: dict = None, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, detail=detail)
        self.extra = extra or {}


class InsufficientBalance(BusinessRuleError):

    def __init__(self, available_balance: Decimal, required_amount: Decimal):
        super().__init__(
            detail="Insufficient advance balance",
            extra={
                "available_balance": str(available_balance),
                "required_amount": str(required_amount),
            },
        )
        self.available_balance = available_balance
        self.required_amount = required_amount


class ExcessPayment(BusinessRuleError):

    def __init__(self, due_amount: Decimal, payment_amount: Decimal):
        super().__init__(
            detail="Payment amount exceeds due amount",
            extra={
                "due_amount": str(due_amount),
                "payment_amount": str(payment_amount),
            },
        )
        self.due_amount = due_amount
        self.payment_amount = payment_amount
