"""
FastAPI Dependency Injection
============================

Reusable dependencies for route handlers. The orchestrator is created once in
the application lifespan and stored on `app.state`; every request gets the
same instance.

CLIENT IDENTIFICATION:
----------------------
The rate limiter counts requests per client id, resolved in this order:

1. X-User-ID header        -> "user:<value>"
2. Bearer token            -> "token:<sha256 prefix>" (the token itself is never stored)
3. Remote address          -> "ip:<address>" (slowapi's get_remote_address)

Example:
    @router.post("/chat")
    async def chat(body: ChatRequest, orchestrator: OrchestratorDep, client_id: ClientIdDep):
        ...
"""

import hashlib
from typing import Annotated

from fastapi import Depends, Request
from slowapi.util import get_remote_address

from iris.core.config.constants import HEADER_USER_ID
from iris.core.config.settings import Settings, get_settings
from iris.orchestration.orchestrator import Orchestrator


def get_orchestrator(request: Request) -> Orchestrator:
    """
    Retrieve the Orchestrator from application state.

    When the lifespan did not run (a bare TestClient without a `with` block)
    an orchestrator is built from settings and cached on app.state.
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = Orchestrator.from_settings(get_settings())
        request.app.state.orchestrator = orchestrator
    return orchestrator


def get_client_id(request: Request) -> str:
    user_id = request.headers.get(HEADER_USER_ID, "").strip()
    if user_id:
        return f"user:{user_id[:128]}"

    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        digest = hashlib.sha256(token.strip().encode("utf-8")).hexdigest()[:16]
        return f"token:{digest}"

    return f"ip:{get_remote_address(request)}"


OrchestratorDep = Annotated[Orchestrator, Depends(get_orchestrator)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
ClientIdDep = Annotated[str, Depends(get_client_id)]
