"""Run the admission server: ``python -m admission_pipeline``."""

from __future__ import annotations

import sys

from admission_pipeline.app import create_app, health_router
from admission_pipeline.logging_config import configure_logging
from admission_pipeline.settings import get_settings
from admission_pipeline.startup import serve
from admission_pipeline.store import InMemorySessionStore


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)

    store = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
    app = create_app(settings, store=store, routers=[health_router])
    return serve(app, store.connect, settings)


if __name__ == "__main__":
    sys.exit(main())
