"""Token state and analysis routes."""

from typing import Any

from fastapi import APIRouter, HTTPException, status

from pumpwatch.api.dependencies import RuntimeDep
from pumpwatch.models.broadcast import OpportunityPayload, StateUpdateMessage, to_wire

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.get("")
async def list_tokens(runtime: RuntimeDep) -> dict[str, Any]:
    """Current summaries of every tracked token, as a stateUpdate payload."""
    return to_wire(StateUpdateMessage(data=runtime.tracker.snapshot()))


@router.get("/{identifier}/analysis")
async def get_token_analysis(identifier: str, runtime: RuntimeDep) -> dict[str, Any]:
    """Fresh evaluation of one token.

    Raises:
        HTTPException: 404 if the token is not tracked.
    """
    analysis = runtime.tracker.analyze(identifier)
    if analysis is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Token not tracked: {identifier}",
        )
    return OpportunityPayload.from_analysis(analysis).model_dump(mode="json", by_alias=True)
