from __future__ import annotations

from qctoken.workers.celery_app import celery_app


def main() -> None:
    """Convenience entrypoint for launching the Celery worker with the beat scheduler."""
    celery_app.worker_main(["worker", "--beat", "--loglevel=info"])


if __name__ == "__main__":
    main()
