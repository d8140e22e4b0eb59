"""
Crisis Detection Endpoints

HTTP adapter over the crisis detection service. Responses carry
risk data and hashes only; submitted text is never echoed back.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from astral.api.dependencies import get_core
from astral.config.logging_config import get_logger
from astral.domain.enums.risk_level import ActionStatus
from astral.domain.models.crisis_models import AnalysisContext
from astral.services.orchestration import ResilienceCore

logger = get_logger(__name__)

router = APIRouter(prefix="/crisis", tags=["crisis"])


class AnalyzeRequest(BaseModel):
    """Text submitted for crisis analysis."""

    text: str = Field(..., max_length=20000)
    language: str = Field(default="en", min_length=2, max_length=8)
    source: str = Field(default="input", max_length=64)
    debounce: bool = Field(default=False, description="Analyze after the debounce window")


class ScheduledResponse(BaseModel):
    """Debounced analysis acknowledgement."""

    scheduled: bool = True
    sequence: int


class ActionStatusRequest(BaseModel):
    status: ActionStatus


@router.post("/analyze")
async def analyze(
    request: AnalyzeRequest,
    core: ResilienceCore = Depends(get_core),
) -> dict:
    """
    Analyze text for crisis indicators.

    Debounced requests return immediately; the outcome is visible
    through GET /crisis/alert once the window elapses.
    """
    context = AnalysisContext(language=request.language, source=request.source)
    if request.debounce:
        sequence = core.analyze_debounced(request.text, context)
        return ScheduledResponse(sequence=sequence).model_dump()

    result = await core.analyze(request.text, context)
    state = core.detection_state()
    return {
        "result": result.to_dict(),
        "alert": state.alert.to_dict() if state.alert else None,
    }


@router.get("/alert")
async def current_alert(core: ResilienceCore = Depends(get_core)) -> dict:
    """Current alert, analysis flag and risk trend."""
    return core.detection_state().to_dict()


@router.post("/alert/dismiss")
async def dismiss_alert(core: ResilienceCore = Depends(get_core)) -> dict:
    core.dismiss_alert()
    return {"dismissed": True}


@router.post("/actions/take")
async def take_actions(core: ResilienceCore = Depends(get_core)) -> dict:
    """Hand pending escalation actions to the caller."""
    actions = core.take_actions()
    return {"actions": [action.to_dict() for action in actions]}


@router.post("/actions/{action_id}")
async def mark_action(
    action_id: UUID,
    request: ActionStatusRequest,
    core: ResilienceCore = Depends(get_core),
) -> dict:
    """Report the execution result of a taken action."""
    if not core.mark_action(action_id, request.status):
        raise HTTPException(status_code=404, detail="Unknown escalation action")
    return {"action_id": str(action_id), "status": request.status.value}
