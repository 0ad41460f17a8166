"""
Session API Endpoints

POST   /api/v1/tutors/{tutor_id}/sessions/{session_id}/start
POST   /api/v1/tutors/{tutor_id}/sessions/{session_id}/complete
POST   /api/v1/tutors/{tutor_id}/sessions/{session_id}/cancel
GET    /api/v1/tutors/{tutor_id}/sessions/{session_id}
POST   /api/v1/tutors/{tutor_id}/sessions/{session_id}/materials
DELETE /api/v1/tutors/{tutor_id}/sessions/{session_id}/materials/{index}
PATCH  /api/v1/sessions/{session_id}/status  (operator)
"""
import logging
import uuid
from typing import Any, Dict, Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field

from tutorly.api.auth import verify_operator_token
from tutorly.services.cancellation import CancellationService, get_cancellation_service
from tutorly.services.materials import ATTACHMENT_KINDS
from tutorly.services.session_lifecycle import SessionLifecycleService, get_session_lifecycle, session_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["sessions"])


class DataResponse(BaseModel):
    """Standard {"data": ...} envelope"""
    data: Dict[str, Any]


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class StatusUpdateRequest(BaseModel):
    status: Literal["scheduled", "ongoing", "completed", "canceled"]


class AttachmentRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    kind: str = Field("document", description=f"One of: {', '.join(ATTACHMENT_KINDS)}")
    url: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)


class MaterialRequest(BaseModel):
    """Either a bare reference (url) or a structured attachment"""
    url: Optional[str] = None
    attachment: Optional[AttachmentRequest] = None

    def to_material(self) -> Union[str, Dict[str, Any]]:
        if self.attachment is not None:
            return {"type": "attachment", **self.attachment.model_dump(exclude_none=True)}
        if self.url:
            return self.url
        raise ValueError("Provide either a url or an attachment")


@router.post("/tutors/{tutor_id}/sessions/{session_id}/start", response_model=DataResponse)
async def start_session(
    tutor_id: uuid.UUID = Path(..., description="Tutor ID"),
    session_id: uuid.UUID = Path(..., description="Session ID"),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle),
):
    """Move a scheduled session to ongoing"""
    session = await lifecycle.start(tutor_id, session_id)
    return {"data": session_to_dict(session)}


@router.post("/tutors/{tutor_id}/sessions/{session_id}/complete", response_model=DataResponse)
async def complete_session(
    tutor_id: uuid.UUID = Path(..., description="Tutor ID"),
    session_id: uuid.UUID = Path(..., description="Session ID"),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle),
):
    """Move an ongoing session to completed and notify both parties"""
    session = await lifecycle.complete(tutor_id, session_id)
    return {"data": session_to_dict(session)}


@router.post("/tutors/{tutor_id}/sessions/{session_id}/cancel", response_model=DataResponse)
async def cancel_session(
    body: Optional[CancelRequest] = None,
    tutor_id: uuid.UUID = Path(..., description="Tutor ID"),
    session_id: uuid.UUID = Path(..., description="Session ID"),
    cancellation: CancellationService = Depends(get_cancellation_service),
):
    """
    Cancel a scheduled session.

    Refunds the payment and frees the tutor's time slots. Notification failures are
    reported in the response but do not fail the request.
    """
    result = await cancellation.cancel(tutor_id, session_id, body.reason if body else None)
    return {"data": result.to_dict()}


@router.get("/tutors/{tutor_id}/sessions/{session_id}", response_model=DataResponse)
async def get_session(
    tutor_id: uuid.UUID = Path(..., description="Tutor ID"),
    session_id: uuid.UUID = Path(..., description="Session ID"),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle),
):
    session = await lifecycle.get_session(tutor_id, session_id)
    return {"data": session_to_dict(session)}


@router.post("/tutors/{tutor_id}/sessions/{session_id}/materials", response_model=DataResponse)
async def add_material(
    body: MaterialRequest,
    tutor_id: uuid.UUID = Path(..., description="Tutor ID"),
    session_id: uuid.UUID = Path(..., description="Session ID"),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle),
):
    try:
        material = body.to_material()
        materials = await lifecycle.add_material(tutor_id, session_id, material)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "VALIDATION_ERROR", "message": str(e), "details": None},
        ) from e
    return {"data": {"session_id": str(session_id), "materials": materials}}


@router.delete("/tutors/{tutor_id}/sessions/{session_id}/materials/{index}", response_model=DataResponse)
async def remove_material(
    tutor_id: uuid.UUID = Path(..., description="Tutor ID"),
    session_id: uuid.UUID = Path(..., description="Session ID"),
    index: int = Path(..., description="Position in the materials list"),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle),
):
    materials = await lifecycle.remove_material(tutor_id, session_id, index)
    return {"data": {"session_id": str(session_id), "materials": materials}}


@router.patch(
    "/sessions/{session_id}/status",
    response_model=DataResponse,
    dependencies=[Depends(verify_operator_token)],
)
async def update_session_status(
    body: StatusUpdateRequest,
    session_id: uuid.UUID = Path(..., description="Session ID"),
    lifecycle: SessionLifecycleService = Depends(get_session_lifecycle),
):
    """Operator override of a session's status; no transition checks are applied"""
    session = await lifecycle.update_status(session_id, body.status)
    return {"data": session_to_dict(session)}
