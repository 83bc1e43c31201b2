"""ASGI entrypoint for the banner scraper API."""

from banner_scraper.api.app import create_app
from banner_scraper.containers import build_container

app = create_app(build_container())
