"""
Basic usage example of fastapi-admission-pipeline.

Demonstrates:
- Building an app whose every request passes the admission pipeline
- Logging a user in and out through the session
- Guarding endpoints with require_identity
"""

from typing import Any

from fastapi import APIRouter, Depends

from admission_pipeline import (
    InMemorySessionStore,
    RequestContext,
    SessionIdentity,
    Settings,
    create_app,
    get_request_context,
    require_identity,
    serve,
)
from admission_pipeline.app import health_router
from admission_pipeline.logging_config import configure_logging

# Mock user table (replace with a real lookup)
USERS = {"user123": {"id": "user123", "email": "user@example.com"}}


async def load_user(user_id: str) -> dict[str, Any] | None:
    """Turn the id kept in the session back into a user."""
    return USERS.get(user_id)


identity = SessionIdentity(load_user)
router = APIRouter()


@router.get("/")
async def public_endpoint():
    """Public endpoint - still gets a session cookie and security headers."""
    return {"message": "Hello, World!"}


@router.post("/login")
async def login(ctx: RequestContext = Depends(get_request_context)):
    """Bind the posted user id to the current session."""
    user_id = (ctx.body or {}).get("user_id")
    user = await load_user(user_id)
    if user is None:
        return {"ok": False}
    identity.login(ctx, user_id, user)
    return {"ok": True}


@router.post("/logout")
async def logout(ctx: RequestContext = Depends(get_request_context)):
    identity.logout(ctx)
    return {"ok": True}


@router.get("/me")
async def get_current_user(user: dict = Depends(require_identity)):
    """Requires a logged-in session."""
    return user


settings = Settings(allowed_origins=["http://localhost:3031"])
store = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
app = create_app(
    settings,
    store=store,
    identity=identity,
    routers=[router, health_router],
    title="Basic Admission Example",
)


if __name__ == "__main__":
    configure_logging(settings.log_level)
    raise SystemExit(serve(app, store.connect, settings))

    # Test with:
    # curl -i http://localhost:3000/
    # curl -i -H "Origin: https://evil.example" http://localhost:3000/
    # curl -c jar -b jar -H "Content-Type: application/json" \
    #      -d '{"user_id": "user123"}' http://localhost:3000/login
    # curl -b jar http://localhost:3000/me
