import asyncio
import logging
from typing import List, Optional

from app.core.config import SWEEP_INTERVAL, require_settings
from app.core.db import init_db, close_db
from app.services.dispatcher import TaskOutcome, WebhookDispatcher

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("webhook_sweeper")


async def sweep_once(dispatcher: WebhookDispatcher) -> List[TaskOutcome]:
    """
    One scheduled pass: recover abandoned claims, then process a batch oldest-first.
    """
    await dispatcher.release_stale_claims()
    outcomes = await dispatcher.run_sweep(oldest_first=True)
    if outcomes:
        failed = sum(1 for outcome in outcomes if outcome.status == "error")
        log.info(f"Sweep finished: {len(outcomes)} task(s), {failed} with delivery errors.")
    return outcomes


async def start_webhook_sweeper(interval: int = SWEEP_INTERVAL, max_iterations: Optional[int] = None):
    """Main loop for the sweeper service."""
    require_settings("DB_URL")
    await init_db()
    log.info("--- Webhook Sweeper Service Started ---")

    iterations = 0
    try:
        async with WebhookDispatcher() as dispatcher:
            while max_iterations is None or iterations < max_iterations:
                iterations += 1
                try:
                    await sweep_once(dispatcher)
                except Exception as e:
                    # Queue unreachable: leave task state alone and try again next tick
                    log.error(f"Sweeper encountered a critical DB error: {e}.")

                await asyncio.sleep(interval)
    finally:
        await close_db()

if __name__ == "__main__":
    try:
        asyncio.run(start_webhook_sweeper())
    except KeyboardInterrupt:
        log.info("Sweeper service stopped.")
