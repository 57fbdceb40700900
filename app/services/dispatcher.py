"""
Webhook Dispatcher

Single implementation of the notification state machine used by every trigger
surface (scheduled sweeper, on-demand endpoint, sweep endpoint, direct send).

Task lifecycle:
    pending -> in_flight        (atomic claim, one dispatcher only)
    in_flight -> completed      (all matching subscriptions answered 2xx, or none matched)
    in_flight -> pending        (delivery failed, attempts < max_attempts)
    in_flight -> failed         (delivery failed, attempts >= max_attempts)

`attempts` counts failed passes only; a successful pass leaves it untouched.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set
from uuid import NAMESPACE_URL, UUID, uuid5

import httpx
from tortoise import timezone
from tortoise.expressions import Q

from app.core import config
from app.events.payloads import build_event_payload, order_section
from app.models.delivery_log import DeliveryLogEntry
from app.models.notification import EVENT_FLAGS, EventType, NotificationStatus, NotificationTask
from app.models.subscription import WebhookSubscription
from app.services.order_context import load_order_context

log = logging.getLogger("webhook_dispatcher")


@dataclass
class DeliveryResult:
    """Outcome of one POST to one subscription."""
    subscription_id: UUID
    url: str
    event_type: str
    status_code: int
    success: bool
    error: Optional[str] = None
    product_id: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        body = {
            "webhook_id": str(self.subscription_id),
            "url": self.url,
            "event": self.event_type,
            "status": self.status_code,
            "success": self.success,
        }
        if self.product_id:
            body["product_id"] = self.product_id
        if self.error:
            body["error"] = self.error
        return body


@dataclass
class TaskOutcome:
    """Per-task summary returned by a sweep."""
    id: str
    status: str # success | error | no_subscriptions | skipped
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        body = {"id": self.id, "status": self.status}
        if self.error:
            body["error"] = self.error
        return body


class WebhookDispatcher:
    """
    Delivers queued notifications to subscribed URLs.

    All collaborators are passed in; use as an async context manager so an
    internally created httpx client gets closed:

        async with WebhookDispatcher() as dispatcher:
            outcomes = await dispatcher.run_sweep()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        batch_size: int = config.BATCH_SIZE,
        max_attempts: int = config.MAX_ATTEMPTS,
        timeout: float = config.DELIVERY_TIMEOUT,
        claim_lease: int = config.CLAIM_LEASE_SECONDS,
        response_body_limit: int = config.RESPONSE_BODY_LIMIT,
    ):
        self._client = client
        self._owns_client = client is None
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.claim_lease = claim_lease
        self.response_body_limit = response_body_limit

    async def __aenter__(self) -> "WebhookDispatcher":
        self._http()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    # ----------- Queue access -----------

    async def fetch_due_tasks(self, oldest_first: bool = True) -> List[NotificationTask]:
        """Returns up to batch_size pending tasks. Store errors propagate to the caller."""
        query = NotificationTask.filter(status=NotificationStatus.PENDING)
        if oldest_first:
            query = query.order_by("created_at")
        return list(await query.limit(self.batch_size))

    async def claim(self, task: NotificationTask) -> bool:
        """
        Moves the task from pending to in_flight with a conditional update.
        Only one concurrent caller can win; the loser gets False and must not deliver.
        """
        now = timezone.now()
        updated = await NotificationTask.filter(
            id=task.id, status=NotificationStatus.PENDING
        ).update(status=NotificationStatus.IN_FLIGHT, claimed_at=now)
        if updated != 1:
            return False
        # Another dispatcher may have finished a pass since this row was read
        await task.refresh_from_db()
        return True

    async def release_stale_claims(self) -> int:
        """Returns in_flight tasks whose claim outlived the lease to pending."""
        cutoff = timezone.now() - timedelta(seconds=self.claim_lease)
        released = await NotificationTask.filter(
            status=NotificationStatus.IN_FLIGHT, claimed_at__lt=cutoff
        ).update(status=NotificationStatus.PENDING, claimed_at=None)
        if released:
            log.warning(f"Released {released} stale in-flight webhook task(s).")
        return released

    async def _finalize_success(self, task: NotificationTask) -> None:
        now = timezone.now()
        await NotificationTask.filter(id=task.id, status=NotificationStatus.IN_FLIGHT).update(
            status=NotificationStatus.COMPLETED,
            last_attempt_at=now,
            last_error=None,
            claimed_at=None,
        )
        task.status = NotificationStatus.COMPLETED
        task.last_attempt_at = now
        task.last_error = None

    async def _finalize_failure(self, task: NotificationTask, error: str) -> None:
        now = timezone.now()
        attempts = task.attempts + 1
        status = NotificationStatus.FAILED if attempts >= self.max_attempts else NotificationStatus.PENDING
        await NotificationTask.filter(id=task.id, status=NotificationStatus.IN_FLIGHT).update(
            status=status,
            attempts=attempts,
            last_attempt_at=now,
            last_error=error,
            claimed_at=None,
        )
        task.status = status
        task.attempts = attempts
        task.last_attempt_at = now
        task.last_error = error

    # ----------- Resolution & delivery -----------

    async def resolve_subscriptions(
        self, business_id: UUID, event_type: EventType, product_id: Optional[UUID] = None
    ) -> List[WebhookSubscription]:
        """Subscriptions of the business flagged for the event; product scope applies to product_purchased only."""
        event_type = EventType(event_type)
        query = WebhookSubscription.filter(business_id=business_id, **{EVENT_FLAGS[event_type]: True})
        if event_type == EventType.PRODUCT_PURCHASED:
            if product_id is None:
                query = query.filter(product_id__isnull=True)
            else:
                query = query.filter(Q(product_id__isnull=True) | Q(product_id=product_id))
        return list(await query)

    async def _delivered_subscription_ids(self, task: NotificationTask) -> Set[str]:
        rows = await DeliveryLogEntry.filter(task_id=task.id, success=True).values_list("subscription_id", flat=True)
        return {str(row) for row in rows}

    async def deliver(
        self,
        subscription: WebhookSubscription,
        payload: Dict[str, Any],
        delivery_id: Any,
        event_type: EventType,
        order_id: UUID,
        product_id: Optional[UUID] = None,
        task: Optional[NotificationTask] = None,
    ) -> DeliveryResult:
        """
        POSTs the payload to one subscription and appends a Delivery Log row.
        Network errors, timeouts and non-2xx answers are returned as failures, never raised.
        """
        event_type = EventType(event_type)
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-ID": str(delivery_id),
            "X-Event-Type": event_type.value,
        }
        status_code = 0
        response_body = None
        error = None

        try:
            response = await self._http().post(
                subscription.url, json=payload, headers=headers, timeout=self.timeout
            )
            status_code = response.status_code
            response_body = response.text[: self.response_body_limit]
            if not response.is_success:
                error = f"HTTP error! status: {status_code}"
        except httpx.TimeoutException:
            error = f"Timed out after {self.timeout}s"
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # A malformed subscription url is a failed attempt like any network error
            error = f"{type(e).__name__}: {e}"
            response_body = error[: self.response_body_limit]

        success = error is None
        if success:
            log.info(f"Delivered {event_type.value} ({delivery_id}) to {subscription.url}")
        else:
            log.warning(f"Delivery of {event_type.value} ({delivery_id}) to {subscription.url} failed: {error}")

        await DeliveryLogEntry.create(
            subscription=subscription,
            task=task,
            order_id=order_id,
            product_id=product_id,
            event_type=event_type.value,
            request_payload=payload,
            response_status=status_code,
            response_body=response_body,
            success=success,
        )
        return DeliveryResult(
            subscription_id=subscription.id,
            url=subscription.url,
            event_type=event_type.value,
            status_code=status_code,
            success=success,
            error=error,
            product_id=str(product_id) if product_id else None,
        )

    # ----------- Task processing -----------

    async def process_task(self, task: NotificationTask) -> TaskOutcome:
        """Claims, delivers and finalizes a single task. Never raises for delivery problems."""
        task_id = str(task.id)
        if not await self.claim(task):
            return TaskOutcome(task_id, "skipped", "Task is being processed elsewhere")

        try:
            subscriptions = await self.resolve_subscriptions(task.business_id, task.event_type, task.product_id)
            if not subscriptions:
                log.info(f"No subscriptions for {task.event_type} task {task_id}; nothing to deliver.")
                await self._finalize_success(task)
                return TaskOutcome(task_id, "no_subscriptions")

            # Destinations that already accepted this task on an earlier pass are not re-sent
            delivered = await self._delivered_subscription_ids(task)
            pending = [s for s in subscriptions if str(s.id) not in delivered]
            results = await asyncio.gather(*(
                self.deliver(
                    subscription, task.payload, task.id, task.event_type,
                    task.order_id, product_id=task.product_id, task=task
                )
                for subscription in pending
            ))
        except Exception as e:
            log.exception(f"Error processing webhook task {task_id}")
            await self._finalize_failure(task, f"Processing error: {e}")
            return TaskOutcome(task_id, "error", str(e))

        failures = [r for r in results if not r.success]
        if failures:
            error = "; ".join(f"{r.url}: {r.error}" for r in failures)
            await self._finalize_failure(task, error)
            return TaskOutcome(task_id, "error", error)

        await self._finalize_success(task)
        return TaskOutcome(task_id, "success")

    async def run_sweep(self, oldest_first: bool = True) -> List[TaskOutcome]:
        """Processes one batch of pending tasks concurrently and waits for all of them."""
        tasks = await self.fetch_due_tasks(oldest_first=oldest_first)
        if not tasks:
            return []
        log.info(f"Sweeping {len(tasks)} pending webhook task(s).")
        return list(await asyncio.gather(*(self.process_task(task) for task in tasks)))

    # ----------- Direct path -----------

    async def send_direct(self, order_id: UUID) -> List[DeliveryResult]:
        """
        Delivers order_paid and product_purchased notifications for an order right now.

        Payloads are assembled from the current order state, nothing is queued.
        Raises OrderNotFound (a LookupError) if the order does not exist.
        """
        context = await load_order_context(order_id, require_customer=False)
        order = context.order
        business_id = order.business_id
        rendered_order = order_section(order)
        sends = []

        for subscription in await self.resolve_subscriptions(business_id, EventType.ORDER_PAID):
            payload = build_event_payload(
                EventType.ORDER_PAID, business_id, order.id,
                order=rendered_order, customer=context.customer, items=context.items,
            )
            sends.append((subscription, payload, EventType.ORDER_PAID, None))

        seen = set()
        for item in context.items:
            if str(item.product_id) in seen:
                continue
            seen.add(str(item.product_id))
            subscriptions = await self.resolve_subscriptions(business_id, EventType.PRODUCT_PURCHASED, item.product_id)
            for subscription in subscriptions:
                payload = build_event_payload(
                    EventType.PRODUCT_PURCHASED, business_id, order.id,
                    order=rendered_order, customer=context.customer, items=context.items,
                    product=item.product, order_item=item,
                )
                sends.append((subscription, payload, EventType.PRODUCT_PURCHASED, item.product_id))

        if not sends:
            log.info(f"No webhooks found for business {business_id} (order {order_id}).")
            return []

        return list(await asyncio.gather(*(
            self.deliver(
                subscription, payload, direct_delivery_id(order.id, event_type, product_id),
                event_type, order.id, product_id=product_id,
            )
            for subscription, payload, event_type, product_id in sends
        )))

    async def get_delivery_logs(self, business_id: UUID, limit: int = 50) -> List[DeliveryLogEntry]:
        """Newest-first delivery history for all subscriptions of a business."""
        return list(
            await DeliveryLogEntry.filter(subscription__business_id=business_id)
            .order_by("-sent_at")
            .limit(limit)
            .prefetch_related("subscription")
        )


async def send_order_webhooks_safely(order_id: UUID) -> List[DeliveryResult]:
    """
    Direct-call adapter for callers whose own operation has already committed.
    Delivery problems are logged here and never reach the caller.
    """
    try:
        async with WebhookDispatcher() as dispatcher:
            return await dispatcher.send_direct(order_id)
    except Exception:
        log.exception(f"Direct webhook send for order {order_id} failed")
        return []


def direct_delivery_id(order_id: UUID, event_type: EventType, product_id: Optional[UUID] = None) -> UUID:
    """Stable X-Webhook-ID for direct sends so receivers can dedupe repeated sends of the same event."""
    event_type = EventType(event_type)
    return uuid5(NAMESPACE_URL, f"{order_id}/{event_type.value}/{product_id or ''}")
