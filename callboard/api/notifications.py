"""
FastAPI router module for live alerts.

Key Endpoints:
- GET /notifications/active - The alert currently on screen and the queue length
- GET /notifications/queue - Alerts waiting behind the active one
- POST /notifications/dismiss - Retire the active alert early
"""

import logging
from typing import List

from fastapi import APIRouter

from callboard.core.dependencies import SequencerDep
from callboard.models.schemas import ActiveNotificationResponse, NotificationEvent

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/active", response_model=ActiveNotificationResponse)
async def get_active(sequencer: SequencerDep) -> ActiveNotificationResponse:
    return ActiveNotificationResponse(active=sequencer.active, queued=sequencer.queued)


@router.get("/queue", response_model=List[NotificationEvent])
async def get_queue(sequencer: SequencerDep) -> List[NotificationEvent]:
    return sequencer.pending()


@router.post("/dismiss", response_model=ActiveNotificationResponse)
async def dismiss(sequencer: SequencerDep) -> ActiveNotificationResponse:
    """
    Dismiss the active alert.

    Returns the state after dismissal: the next queued alert, if any, is
    already active.
    """
    retired = sequencer.dismiss()
    if retired is not None:
        logger.debug(f"Dismissed {retired.outcomeName} alert for {retired.subjectName}")
    return ActiveNotificationResponse(active=sequencer.active, queued=sequencer.queued)
