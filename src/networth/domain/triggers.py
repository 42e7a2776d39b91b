"""Manual and scheduled entry points for ingestion passes."""

import hmac
import logging
import threading
from datetime import timedelta
from typing import Any, Optional

from networth.domain.errors import SourceAuthError, UnauthenticatedError
from networth.domain.ingestion import IngestionOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(hours=4)


def trigger_manual_ingestion(
    orchestrator: IngestionOrchestrator,
    token: Optional[str],
    expected_token: Optional[str],
) -> dict[str, Any]:
    """Run one ingestion pass on behalf of an authenticated caller.

    Args:
        orchestrator: Orchestrator that runs the pass
        token: Token presented by the caller
        expected_token: Token the caller must present

    Returns:
        Dict with success, count (applied transactions) and message

    Raises:
        UnauthenticatedError: If the token is missing or wrong; no work is done
    """
    if not token or not expected_token or not hmac.compare_digest(token, expected_token):
        raise UnauthenticatedError("User must be logged in to sync transactions.")

    try:
        result = orchestrator.run_pass()
    except SourceAuthError as e:
        logger.error(f"Manual ingestion failed: {e}")
        return {
            "success": False,
            "count": 0,
            "message": "Mail source authentication failed. Please reconnect the mailbox.",
        }

    return {"success": True, "count": result.applied_count, "message": result.message}


class IngestionScheduler:
    """Run an ingestion pass at a fixed interval until stopped."""

    def __init__(self, orchestrator: IngestionOrchestrator, interval: timedelta = DEFAULT_INTERVAL):
        self.orchestrator = orchestrator
        self.interval = interval

    def run_once(self) -> None:
        """Run a single scheduled pass, logging instead of raising on failure."""
        logger.info("Scheduled ingestion: starting")
        try:
            result = self.orchestrator.run_pass()
        except Exception:
            logger.exception("Scheduled ingestion failed")
            return
        logger.info(f"Scheduled ingestion complete: {result.message}")

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Run passes every interval until stop_event is set.

        The first pass runs immediately.
        """
        stop_event = stop_event or threading.Event()
        seconds = self.interval.total_seconds()
        logger.info(f"Ingestion scheduler started (every {self.interval})")
        while not stop_event.is_set():
            self.run_once()
            if stop_event.wait(seconds):
                break
        logger.info("Ingestion scheduler stopped")
