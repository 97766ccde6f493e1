# Overview: Celery wiring; tasks run inside the Flask application context.

from __future__ import annotations

from celery import Celery, Task
from flask import Flask, has_app_context


class AppContextTask(Task):
    """Runs the task body inside the owning Flask app's context."""

    abstract = True

    def _flask_app(self) -> Flask | None:
        return getattr(self.app, "flask_app", None)

    def __call__(self, *args, **kwargs):
        flask_app = self._flask_app()
        if has_app_context() or flask_app is None:
            return self.run(*args, **kwargs)
        with flask_app.app_context():
            return self.run(*args, **kwargs)


def celery_init_app(app: Flask) -> Celery:
    celery_app = Celery(app.name, task_cls=AppContextTask)
    celery_app.config_from_object(app.config["CELERY"])
    # All tasks here settle sales, so one time budget covers them
    time_limit = app.config["SETTLEMENT_TIME_LIMIT"]
    celery_app.conf.task_time_limit = time_limit
    celery_app.conf.task_soft_time_limit = max(time_limit - 10, 1)
    celery_app.flask_app = app
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app
