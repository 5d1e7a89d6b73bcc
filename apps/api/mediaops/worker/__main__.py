from __future__ import annotations

import logging
import os

from mediaops.core.config import get_settings
from mediaops.core.otel import setup_worker_otel
from mediaops.worker.runner import WorkerConfig, run_worker_forever

logger = logging.getLogger("mediaops.worker")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    settings = get_settings()
    otel = setup_worker_otel(settings=settings)
    logger.info("worker tracing: %s", otel.reason)

    config = WorkerConfig.from_settings(settings)
    # Several workers on one host need distinct ids for artifact claim tokens.
    if worker_id := os.environ.get("WORKER_ID"):
        config = WorkerConfig(
            artifact_poll_interval_seconds=config.artifact_poll_interval_seconds,
            worker_id=worker_id,
        )
    try:
        run_worker_forever(config=config)
    finally:
        if otel.shutdown is not None:
            otel.shutdown()


if __name__ == "__main__":
    main()
