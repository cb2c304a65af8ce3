from __future__ import annotations

import sys

from app.workers.celery_app import celery_app


def main(argv: list[str] | None = None) -> None:
    """Start a worker; pass ``--beat`` to also run the pending-expiry schedule."""
    args = list(sys.argv[1:] if argv is None else argv)
    worker_args = ["worker", "--loglevel=info", "--queues=default"]
    if "--beat" in args:
        worker_args.append("--beat")
    celery_app.worker_main(worker_args)


if __name__ == "__main__":
    main()
