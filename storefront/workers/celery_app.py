import os

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging
from flask import has_app_context

from storefront.logging_config import configure_logging_for_worker

celery = Celery(
    "storefront",
    broker=os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL")),
    backend=os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL")),
    include=["storefront.workers.tasks"],
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    beat_schedule={
        "expire-lapsed-subscriptions": {
            "task": "storefront.workers.tasks.expire_lapsed_subscriptions",
            "schedule": crontab(minute=0),
        },
        "prune-callback-attempts": {
            "task": "storefront.workers.tasks.prune_callback_attempts",
            "schedule": crontab(minute=30),
        },
    },
)


# shared_task proxies resolve against the default app
celery.set_default()


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging_for_worker()


def init_celery(app):
    celery.conf.update(
        broker_url=app.config["CELERY_BROKER_URL"],
        result_backend=app.config["CELERY_RESULT_BACKEND"],
        task_always_eager=app.config.get("CELERY_TASK_ALWAYS_EAGER", False),
    )

    class ContextTask(celery.Task):
        abstract = True

        def __call__(self, *args, **kwargs):
            # Eager tasks run inside the caller's app context already
            if has_app_context():
                return super().__call__(*args, **kwargs)
            with app.app_context():
                return super().__call__(*args, **kwargs)

    celery.Task = ContextTask
    app.extensions["celery"] = celery
    return celery
