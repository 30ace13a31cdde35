#!/usr/bin/env python3
"""
Relay pending outbox notifications.

Usage:
    python scripts/drain_outbox.py [--limit N] [--loop SECONDS]

Each pending event is claimed, handed to the log notifier and marked done;
failures go back to pending with backoff until maxAttempts.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from freelanceflow.db.dynamodb.errors import DdbConflict  # noqa: E402
from freelanceflow.modules.notifications.notifier import LogNotifier  # noqa: E402
from freelanceflow.observability.logging import configure_logging, get_logger  # noqa: E402
from freelanceflow.repositories import outbox_repo  # noqa: E402
from freelanceflow.repositories.items import now_iso  # noqa: E402
from freelanceflow.settings import settings  # noqa: E402

log = get_logger("drain_outbox")


def drain_once(limit: int) -> int:
    transport = LogNotifier()
    delivered = 0
    now = now_iso()
    for evt in outbox_repo.list_pending(limit=limit):
        eid = str(evt.get("eventId") or "")
        if str(evt.get("nextAttemptAt") or "") > now:
            continue
        try:
            outbox_repo.claim_event(event_id=eid)
        except DdbConflict:
            continue
        try:
            transport.emit(str(evt.get("room") or ""), str(evt.get("eventType") or ""), evt.get("payload") or {})
        except Exception as e:
            log.warning("outbox_delivery_failed", event_id=eid, error=str(e))
            outbox_repo.mark_retry(event_id=eid, error=str(e))
            continue
        outbox_repo.mark_done(event_id=eid)
        delivered += 1
    return delivered


def main() -> int:
    parser = argparse.ArgumentParser(description="Deliver pending outbox notifications")
    parser.add_argument("--limit", type=int, default=50)
    parser.add_argument("--loop", type=float, default=0, help="poll interval; 0 drains once and exits")
    args = parser.parse_args()

    configure_logging(level=settings.log_level)
    while True:
        n = drain_once(args.limit)
        log.info("outbox_drained", delivered=n)
        if args.loop <= 0:
            return 0
        time.sleep(args.loop)


if __name__ == "__main__":
    sys.exit(main())
