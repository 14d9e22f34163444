"""
Vote routes. One vote per user and request; counts come back with every change.
"""
from dataclasses import asdict
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from crowdqr.api.dependencies import get_current_user, get_notifier, RecordId
from crowdqr.db.session import get_db
from crowdqr.models.user import User
from crowdqr.schemas.vote import VoteCountResponse, VoteCreate, VoteResponse
from crowdqr.services import crowd_service, vote_service
from crowdqr.services.notification_service import NotificationService

router = APIRouter(prefix="/votes", tags=["votes"])


@router.post("", response_model=VoteCountResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    vote_data: VoteCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier)
):
    """
    Vote for a request.

    A second vote by the same user is rejected with 409 and code ALREADY_VOTED,
    also when both votes race.
    """
    tally = await crowd_service.vote(
        db, notifier, current_user, vote_data.user_id, vote_data.request_id
    )
    return VoteCountResponse(**asdict(tally))


@router.delete("/user/{user_id}/request/{request_id}", response_model=VoteCountResponse)
async def remove_vote(
    user_id: RecordId,
    request_id: RecordId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier)
):
    """Withdraw a vote."""
    tally = await crowd_service.unvote(db, notifier, current_user, user_id, request_id)
    return VoteCountResponse(**asdict(tally))


@router.get("/request/{request_id}", response_model=List[VoteResponse])
async def list_request_votes(request_id: RecordId, db: Session = Depends(get_db)):
    return vote_service.list_votes_for_request(db, request_id)
