"""
api/body.py -- JSON request bodies parsed after authentication.

FastAPI decodes declared body parameters before it runs a route's
dependencies, so a malformed body would be answered with 400 ahead of the
401/403 the caller is owed. Guarded routes take their body through
json_body() instead, declared after the auth dependency:

    def update(..., current_user: User = Depends(_require_admin),
               body: AuctionUpdate = Depends(json_body(AuctionUpdate))):

Dependencies resolve in declaration order, so the auth check always runs
first and the body is read only for an authorized caller.
"""

import json
from typing import Any, Callable, TypeVar

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_json(request: Request) -> Any:
    """Decode the request body, mapping undecodable input to the 400 envelope."""
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "validation_error", "message": "Malformed JSON body."},
        ) from exc


def json_body(model: type[ModelT]) -> Callable[[Request], Any]:
    """Build a dependency that validates the JSON body against model."""

    async def dependency(request: Request) -> ModelT:
        payload = await read_json(request)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RequestValidationError(exc.errors(include_url=False)) from exc

    return dependency
