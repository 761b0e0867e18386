"""FastAPI application exposing the collection's public operations."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable, Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mergemint.engine.collection import CompositeCollection
from mergemint.engine.errors import (
    AuthorizationError,
    ConfigurationError,
    InsufficientResourceError,
    MergeMintError,
    NotFoundError,
    ValidationError,
)
from mergemint.engine.seeds import HostContext

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: Dict[Type[MergeMintError], int] = {
    AuthorizationError: 403,
    NotFoundError: 404,
    InsufficientResourceError: 409,
    ValidationError: 422,
    ConfigurationError: 503,
}


class MintRequest(BaseModel):
    caller: str
    recipient: str
    count: int
    value: Optional[int] = None


class CompositeRequest(BaseModel):
    caller: str
    keep_id: int
    burn_id: int


class UnitRequest(BaseModel):
    caller: str
    unit_id: int


class DepositRequest(BaseModel):
    caller: str
    amount: int


def _status_for(exc: MergeMintError) -> int:
    for error_type, status in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 400


def _default_entropy() -> int:
    return int.from_bytes(os.urandom(32), "big")


def create_api_server(
    collection: CompositeCollection,
    *,
    clock: Optional[Callable[[], int]] = None,
    entropy: Optional[Callable[[], int]] = None,
    on_change: Optional[Callable[[CompositeCollection], None]] = None,
) -> FastAPI:
    """Build the application.

    ``clock`` and ``entropy`` supply the host values of each operation;
    ``on_change`` runs after every successful mutation, e.g. to persist the
    snapshot.  It runs under the collection lock, so persisted snapshots land
    in the order the mutations happened.
    """

    clock = clock or (lambda: int(time.time()))
    entropy = entropy or _default_entropy
    app = FastAPI(title="mergemint")

    def context_for(caller: str) -> HostContext:
        return HostContext(timestamp=int(clock()), entropy=int(entropy()), caller=caller)

    def changed() -> None:
        if on_change is not None:
            on_change(collection)

    @app.exception_handler(MergeMintError)
    async def _domain_error(request: Request, exc: MergeMintError) -> JSONResponse:
        logger.debug("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.post("/v1/mint")
    def mint(body: MintRequest):
        with collection.lock:
            unit_ids = collection.mint(
                context_for(body.caller), body.recipient, body.count, body.value
            )
            changed()
        return {"unit_ids": unit_ids}

    @app.post("/v1/composite")
    def composite(body: CompositeRequest):
        with collection.lock:
            result = collection.composite(context_for(body.caller), body.keep_id, body.burn_id)
            changed()
        return {
            "keep_id": result.keep_id,
            "burn_id": result.burn_id,
            "depth": result.depth,
            "unit_count": result.unit_count,
        }

    @app.post("/v1/burn")
    def burn(body: UnitRequest):
        with collection.lock:
            collection.burn(context_for(body.caller), body.unit_id)
            changed()
        return {"unit_id": body.unit_id}

    @app.post("/v1/claim")
    def claim(body: UnitRequest):
        with collection.lock:
            amount = collection.claim_prize(context_for(body.caller), body.unit_id)
            changed()
        return {"unit_id": body.unit_id, "amount": amount}

    @app.post("/v1/deposit")
    def deposit(body: DepositRequest):
        with collection.lock:
            collection.deposit_funds(context_for(body.caller), body.amount)
            changed()
        return {"amount": body.amount}

    @app.get("/v1/units/{unit_id}")
    def unit(unit_id: int):
        return collection.unit(unit_id)

    @app.get("/v1/pool")
    def pool():
        return collection.pool_status()

    @app.get("/v1/events")
    def events(limit: int = 50):
        return [event.as_dict() for event in collection.events[-limit:]] if limit > 0 else []

    return app


__all__ = ["STATUS_BY_ERROR", "create_api_server"]
