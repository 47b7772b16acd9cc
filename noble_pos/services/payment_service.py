# ==============================================================================
# PAYMENT SERVICE
# ==============================================================================
# Validation of payment details at checkout and construction of the payment
# record stored on the sale.
# ==============================================================================

import math
import re
from typing import Any, Dict, Optional

from noble_pos.models.entities import Payment, PaymentMethod, to_text
from noble_pos.repositories.document_store import SERVER_TIMESTAMP

UPI_ID_RE = re.compile(r'^[a-zA-Z0-9._-]{3,}@[a-zA-Z]{2,}$')
UPI_REF_RE = re.compile(r'^[a-zA-Z0-9_-]{6,}$')
CARD_LAST4_RE = re.compile(r'^\d{4}$')
CARD_APPROVAL_RE = re.compile(r'^[a-zA-Z0-9]{6,}$')


def _parse_amount(value: Any) -> Optional[float]:
    """Finite float or None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class PaymentService:
    """
    Service for payment details.

    Responsibilities:
    - Validate references per method (UPI id / txn ref, card last 4 / approval)
    - Validate cash received against the total
    - Compute amount received and change
    """

    def validate(
        self,
        method: str,
        total: float,
        reference: Optional[str] = None,
        cash_received: Any = None,
    ) -> Dict[str, Any]:
        """
        Validates payment input.

        Args:
            method: One of Cash, UPI, Card, Other
            total: Amount due
            reference: UPI id / transaction ref / card last 4 / approval code
            cash_received: Cash handed over (Cash only)

        Returns:
            {'ok': True} or {'ok': False, 'error'}
        """
        try:
            method = PaymentMethod(method)
        except ValueError:
            return {'ok': False, 'error': f'Unsupported payment method: {method}'}

        reference = to_text(reference)

        if method == PaymentMethod.UPI:
            if not reference or not (UPI_ID_RE.match(reference) or UPI_REF_RE.match(reference)):
                return {
                    'ok': False,
                    'error': 'Enter a valid UPI ID (e.g., name@bank) or transaction reference.',
                }

        elif method == PaymentMethod.CARD:
            if not reference or not (CARD_LAST4_RE.match(reference) or CARD_APPROVAL_RE.match(reference)):
                return {
                    'ok': False,
                    'error': 'Enter card last 4 digits or approval code (min 6 chars).',
                }

        elif method == PaymentMethod.CASH:
            received = _parse_amount(cash_received)
            if received is None or received < total:
                return {
                    'ok': False,
                    'error': 'Cash received must be a number and at least equal to total.',
                }

        return {'ok': True}

    def build_payment(
        self,
        method: str,
        total: float,
        reference: Optional[str] = None,
        cash_received: Any = None,
    ) -> Payment:
        """
        Payment record for a validated input.

        Cash records the amount handed over and the change; every other
        method is recorded as paid in full.
        """
        method = PaymentMethod(method)
        if method == PaymentMethod.CASH:
            received = _parse_amount(cash_received) or 0.0
            change = round(max(0.0, received - total), 2)
        else:
            received = total
            change = 0.0
        return Payment(
            method=method.value,
            reference=to_text(reference) or None,
            status='paid',
            paid_at=SERVER_TIMESTAMP,
            amount_received=received,
            change=change,
        )
