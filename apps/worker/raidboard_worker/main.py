from __future__ import annotations

import logging
import time

from .config import get_settings
from .tasks import refresh_boss_map

logger = logging.getLogger("raidboard_worker")


def _configure_logging() -> None:
    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def run_cycle() -> bool:
    settings = get_settings()
    ok, status = refresh_boss_map(settings)
    if ok:
        logger.info("[worker] %s", status)
    else:
        logger.warning("[worker] %s", status)
    return ok


def main() -> None:
    _configure_logging()
    settings = get_settings()
    logger.info("[worker] raidboard worker started interval=%ss", settings.worker_interval_seconds)
    while True:
        run_cycle()
        time.sleep(settings.worker_interval_seconds)


if __name__ == "__main__":
    main()
