import os

from dotenv import load_dotenv

load_dotenv()

from storefront import create_app  # noqa: E402
from storefront.workers.celery_app import celery  # noqa: E402,F401

config = os.getenv("APP_ENV", "production")

app = create_app(config)
