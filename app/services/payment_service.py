import logging
from typing import Optional
from uuid import UUID

from app.models.order import Customer, Order
from app.schemas.payment import GatewayWebhookPayload
from app.services.crm_client import CRMClient
from app.services.order_service import mark_order_paid

log = logging.getLogger("payment_service")


class PaymentRejectedError(Exception):
    """The gateway reported a non-zero response code."""


async def confirm_gateway_payment(payload: GatewayWebhookPayload, crm: Optional[CRMClient] = None) -> Order:
    """
    Applies a gateway payment confirmation to the order it refers to.

    A rejected payment raises PaymentRejectedError before anything is written.
    On success the order is completed, its notifications are queued in the same
    transaction, and a note is added to the customer's CRM contact (best effort).
    """
    if payload.ResponseCode != 0:
        raise PaymentRejectedError(
            f"Payment failed with ResponseCode {payload.ResponseCode}: {payload.Description or 'no description'}"
        )

    try:
        order_id = UUID(payload.ReturnValue)
    except ValueError:
        raise ValueError(f"ReturnValue '{payload.ReturnValue}' is not a valid order id")

    info = payload.TranzactionInfo
    document_url = payload.DocumentInfo.DocumentUrl if payload.DocumentInfo else None
    order, changed = await mark_order_paid(
        order_id,
        payment_method="credit_card",
        payment_reference="Cardcom",
        transaction_id=str(payload.TranzactionId) if payload.TranzactionId is not None else None,
        payment_details={
            "approval_number": info.ApprovalNumber if info else None,
            "card_last4": info.Last4CardDigits if info else None,
            "card_owner": info.CardOwnerName if info else None,
            "payments": info.NumberOfPayments if info else None,
            "low_profile_id": payload.LowProfileId,
        },
        document_url=document_url,
    )

    if changed:
        await add_payment_note(order, payload, crm=crm)
    return order


async def add_payment_note(order: Order, payload: GatewayWebhookPayload, crm: Optional[CRMClient] = None) -> bool:
    """Side channel: failures are logged and never reach the payment response."""
    try:
        if not order.customer_id:
            return False
        customer = await Customer.get_or_none(id=order.customer_id)
        if not customer or not customer.contact_id:
            log.info(f"Order {order.id} has no CRM contact, skipping payment note.")
            return False

        approval = payload.TranzactionInfo.ApprovalNumber if payload.TranzactionInfo else None
        note = (
            f"Payment received for order {order.id}: {order.total_amount} {order.currency}. "
            f"Transaction {payload.TranzactionId}, approval {approval}."
        )
        if order.document_url:
            note += f" Invoice: {order.document_url}"

        await (crm or CRMClient()).add_contact_note(customer.contact_id, note)
        return True
    except Exception as e:
        log.error(f"Failed to add CRM payment note for order {order.id}: {e}")
        return False
