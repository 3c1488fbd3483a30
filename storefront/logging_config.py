# storefront/logging_config.py
import logging
import logging.config
import os
from datetime import datetime

from flask import g, has_request_context, request
from pythonjsonlogger import jsonlogger


class RequestIdFilter(logging.Filter):
    """
    Inject request_id into every log record if present.
    """

    def filter(self, record):
        record.request_id = g.get("request_id") if has_request_context() else None
        return True


def _logging_dict(level, with_request_id=True):
    fmt = (
        "%(asctime)s "
        "%(levelname)s "
        "%(name)s "
        "%(message)s "
        "%(module)s "
        "%(funcName)s "
        "%(lineno)d"
    )
    handler = {
        "class": "logging.StreamHandler",
        "formatter": "json",
    }
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {},
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "fmt": fmt + (" %(request_id)s" if with_request_id else ""),
            },
        },
        "handlers": {"default": handler},
        "root": {
            "level": level,
            "handlers": ["default"],
        },
    }
    if with_request_id:
        config["filters"]["request_id"] = {"()": RequestIdFilter}
        handler["filters"] = ["request_id"]
    return config


def setup_logging(app):
    """Configure structured JSON logging for the application"""
    log_level = app.config.get("LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper()

    logging.config.dictConfig(_logging_dict(log_level))

    @app.before_request
    def log_request():
        if app.config.get("LOG_REQUESTS", False):
            g.start_time = datetime.now()
            app.logger.info(
                f"Request: {request.method} {request.path}",
                extra={"ip": request.remote_addr},
            )

    @app.after_request
    def log_response(response):
        if app.config.get("LOG_REQUESTS", False) and "start_time" in g:
            duration = (datetime.now() - g.start_time).total_seconds() * 1000
            app.logger.info(
                f"Response: {request.method} {request.path} - {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(duration, 2),
                    "method": request.method,
                    "path": request.path,
                },
            )
        return response

    return app


def configure_logging_for_worker():
    """Configure logging for Celery workers and CLI scripts (no request context)."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.config.dictConfig(_logging_dict(log_level, with_request_id=False))
