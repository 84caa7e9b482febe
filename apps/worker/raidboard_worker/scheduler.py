from __future__ import annotations

import datetime as dt
import logging
import time

from .main import _configure_logging, run_cycle

logger = logging.getLogger("raidboard_worker.scheduler")


def seconds_until_next_hour(now: dt.datetime | None = None) -> int:
    now = now or dt.datetime.now(dt.UTC)
    next_hour = (now + dt.timedelta(hours=1)).replace(minute=0, second=0, microsecond=0)
    return max(1, int((next_hour - now).total_seconds()))


def main() -> None:
    _configure_logging()
    logger.info("[scheduler] raidboard scheduler started (hourly)")
    while True:
        run_cycle()
        time.sleep(seconds_until_next_hour())


if __name__ == "__main__":
    main()
