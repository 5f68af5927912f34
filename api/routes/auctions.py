"""
api/routes/auctions.py -- Auction record routes.

Routes:
  GET    /api/auctions          -- list, filter by ?status= (public)
  POST   /api/auctions          -- create (admin only)
  GET    /api/auctions/{id}     -- one auction (public)
  PUT    /api/auctions/{id}     -- partial update (admin only)
  DELETE /api/auctions/{id}     -- delete (admin only)

Auctions are records only: nothing here places bids or moves
currentHighestBid. The referenced vehicle must exist when the auction is
created; it is not re-checked afterwards.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.body import json_body
from api.models import AuctionCreate, AuctionResponse, AuctionUpdate, MessageResponse
from auth.dependencies import require_permission
from auth.models import User
from auth.policy import Action
from market.models import AuctionStatus
from market.store import MarketStore

logger = logging.getLogger("automarket.api")

# Auth policy:
# - GET routes: public
# - POST, PUT, DELETE: requires admin (manage_auctions)
router = APIRouter()

_require_admin = require_permission(Action.manage_auctions)


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": "Auction not found."},
    )


def _bad_window() -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"code": "validation_error", "message": "endTime must be after startTime."},
    )


@router.get("/auctions", response_model=list[AuctionResponse])
def list_auctions(
    request: Request,
    status: Optional[AuctionStatus] = Query(default=None),
) -> list[AuctionResponse]:
    store: MarketStore = request.app.state.market
    auctions = store.list_auctions(status=status.value if status else None)
    return [AuctionResponse.from_entity(a) for a in auctions]


@router.post("/auctions", response_model=AuctionResponse, status_code=201)
def create_auction(
    request: Request,
    current_user: User = Depends(_require_admin),
    body: AuctionCreate = Depends(json_body(AuctionCreate)),
) -> AuctionResponse:
    """Open an auction record for an existing vehicle."""
    store: MarketStore = request.app.state.market
    if store.get_vehicle(body.vehicle_id) is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "unknown_vehicle", "message": "Vehicle not found."},
        )
    auction_id = store.create_auction(body.to_entity())
    logger.info("Auction %s created for vehicle %s by %s", auction_id, body.vehicle_id, current_user.id)
    return AuctionResponse.from_entity(store.get_auction(auction_id))


@router.get("/auctions/{auction_id}", response_model=AuctionResponse)
def get_auction(request: Request, auction_id: str) -> AuctionResponse:
    store: MarketStore = request.app.state.market
    auction = store.get_auction(auction_id)
    if auction is None:
        raise _not_found()
    return AuctionResponse.from_entity(auction)


@router.put("/auctions/{auction_id}", response_model=AuctionResponse)
def update_auction(
    request: Request,
    auction_id: str,
    current_user: User = Depends(_require_admin),
    body: AuctionUpdate = Depends(json_body(AuctionUpdate)),
) -> AuctionResponse:
    """Apply a partial update, keeping endTime after startTime."""
    store: MarketStore = request.app.state.market
    existing = store.get_auction(auction_id)
    if existing is None:
        raise _not_found()

    updates: dict = {}
    if body.start_time is not None:
        updates["start_time"] = body.start_time.isoformat()
    if body.end_time is not None:
        updates["end_time"] = body.end_time.isoformat()
    if body.starting_bid is not None:
        updates["starting_bid"] = body.starting_bid
    if body.status is not None:
        updates["status"] = body.status.value
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    start = datetime.fromisoformat(updates.get("start_time", existing.start_time))
    end = datetime.fromisoformat(updates.get("end_time", existing.end_time))
    if end <= start:
        raise _bad_window()

    if not store.update_auction(auction_id, **updates):
        raise _not_found()
    return AuctionResponse.from_entity(store.get_auction(auction_id))


@router.delete("/auctions/{auction_id}", response_model=MessageResponse)
def delete_auction(
    request: Request,
    auction_id: str,
    current_user: User = Depends(_require_admin),
) -> MessageResponse:
    store: MarketStore = request.app.state.market
    if not store.delete_auction(auction_id):
        raise _not_found()
    logger.info("Auction %s deleted by %s", auction_id, current_user.id)
    return MessageResponse(message="Auction deleted.")
