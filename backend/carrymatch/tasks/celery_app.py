import os
from celery import Celery


def make_celery() -> Celery:
    broker = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    backend = os.getenv("CELERY_RESULT_BACKEND", broker)
    app = Celery("carrymatch", broker=broker, backend=backend, include=[
        "carrymatch.tasks.jobs.notify",
    ])
    app.conf.update(
        task_track_started=True,
        # Tests run jobs inline instead of going through the broker
        task_always_eager=os.getenv("CELERY_TASK_ALWAYS_EAGER", "").lower() in ("1", "true", "yes"),
    )
    return app

celery_app = make_celery()
