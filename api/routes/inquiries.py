"""
api/routes/inquiries.py -- Customer inquiry routes.

Routes:
  POST   /api/inquiries               -- submit (any authenticated user)
  GET    /api/inquiries               -- list with submitter details (admin only)
  GET    /api/inquiries/{id}          -- one inquiry (admin only)
  PUT    /api/inquiries/{id}/status   -- set status and optional response (admin only)
  DELETE /api/inquiries/{id}          -- delete (admin only)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.body import json_body
from api.models import InquiryCreate, InquiryResponse, InquiryStatusUpdate, MessageResponse
from auth.dependencies import require_permission
from auth.models import User
from auth.policy import Action
from auth.store import UserStore
from market.store import MarketStore

router = APIRouter()

_require_admin = require_permission(Action.manage_inquiries)


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": "Inquiry not found."},
    )


@router.post("/inquiries", response_model=InquiryResponse, status_code=201)
def create_inquiry(
    request: Request,
    current_user: User = Depends(require_permission(Action.submit_inquiry)),
    body: InquiryCreate = Depends(json_body(InquiryCreate)),
) -> InquiryResponse:
    """Record an inquiry on behalf of the authenticated principal."""
    store: MarketStore = request.app.state.market
    inquiry_id = store.create_inquiry(body.to_entity(user_id=current_user.id))
    return InquiryResponse.from_entity(store.get_inquiry(inquiry_id), submitter=current_user)


@router.get("/inquiries", response_model=list[InquiryResponse])
def list_inquiries(request: Request, current_user: User = Depends(_require_admin)) -> list[InquiryResponse]:
    """List inquiries newest first, each with its submitter's username and email."""
    store: MarketStore = request.app.state.market
    user_store: UserStore = request.app.state.user_store
    inquiries = store.list_inquiries()
    submitters = user_store.get_by_ids({i.user_id for i in inquiries if i.user_id})
    return [InquiryResponse.from_entity(i, submitter=submitters.get(i.user_id)) for i in inquiries]


@router.get("/inquiries/{inquiry_id}", response_model=InquiryResponse)
def get_inquiry(request: Request, inquiry_id: str, current_user: User = Depends(_require_admin)) -> InquiryResponse:
    store: MarketStore = request.app.state.market
    user_store: UserStore = request.app.state.user_store
    inquiry = store.get_inquiry(inquiry_id)
    if inquiry is None:
        raise _not_found()
    submitter = user_store.get_by_id(inquiry.user_id) if inquiry.user_id else None
    return InquiryResponse.from_entity(inquiry, submitter=submitter)


@router.put("/inquiries/{inquiry_id}/status", response_model=InquiryResponse)
def update_inquiry_status(
    request: Request,
    inquiry_id: str,
    current_user: User = Depends(_require_admin),
    body: InquiryStatusUpdate = Depends(json_body(InquiryStatusUpdate)),
) -> InquiryResponse:
    store: MarketStore = request.app.state.market
    updates: dict = {"status": body.status.value}
    if body.response is not None:
        updates["response"] = body.response
    if not store.update_inquiry(inquiry_id, **updates):
        raise _not_found()
    return InquiryResponse.from_entity(store.get_inquiry(inquiry_id))


@router.delete("/inquiries/{inquiry_id}", response_model=MessageResponse)
def delete_inquiry(
    request: Request,
    inquiry_id: str,
    current_user: User = Depends(_require_admin),
) -> MessageResponse:
    store: MarketStore = request.app.state.market
    if not store.delete_inquiry(inquiry_id):
        raise _not_found()
    return MessageResponse(message="Inquiry deleted.")
