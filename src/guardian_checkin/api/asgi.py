"""ASGI entrypoint for the check-in API."""

from guardian_checkin.api.app import create_app
from guardian_checkin.containers import build_container

app = create_app(build_container())
