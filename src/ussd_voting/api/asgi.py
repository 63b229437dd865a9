"""ASGI entrypoint for the USSD voting API."""

from ussd_voting.api.app import create_app
from ussd_voting.containers import build_container

app = create_app(build_container())
