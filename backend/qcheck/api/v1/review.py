from __future__ import annotations

from fastapi import APIRouter, Depends

from qcheck.api.v1.converters import question_response
from qcheck.api.v1.dependencies import provide_actor, provide_review_coordinator, provide_store
from qcheck.api.v1.schemas.question import QuestionListResponse, QuestionResponse
from qcheck.api.v1.schemas.review import BulkApproveRequest, BulkApproveResponse, RejectRequest
from qcheck.application.review import ReviewCoordinator, ReviewQueue
from qcheck.domain.models import Actor
from qcheck.infra.db.store import DatabaseStore

router = APIRouter(prefix="/review", tags=["review"])


@router.get("/pending", response_model=QuestionListResponse)
def list_pending(actor: Actor = Depends(provide_actor), store: DatabaseStore = Depends(provide_store)):
    rows = ReviewQueue(store=store).pending(actor)
    return QuestionListResponse(questions=[question_response(row) for row in rows], count=len(rows))


@router.get("/reviewed", response_model=QuestionListResponse)
def list_reviewed(actor: Actor = Depends(provide_actor), store: DatabaseStore = Depends(provide_store)):
    rows = ReviewQueue(store=store).reviewed(actor)
    return QuestionListResponse(questions=[question_response(row) for row in rows], count=len(rows))


@router.post("/questions/{questionId}/approve", response_model=QuestionResponse)
def approve_question(
    questionId: str,
    actor: Actor = Depends(provide_actor),
    coordinator: ReviewCoordinator = Depends(provide_review_coordinator),
):
    return question_response(coordinator.approve(questionId, actor))


@router.post("/questions/{questionId}/reject", response_model=QuestionResponse)
def reject_question(
    questionId: str,
    body: RejectRequest,
    actor: Actor = Depends(provide_actor),
    coordinator: ReviewCoordinator = Depends(provide_review_coordinator),
):
    return question_response(coordinator.reject(questionId, actor, body.comment))


@router.post("/bulk-approve", response_model=BulkApproveResponse)
def bulk_approve(
    body: BulkApproveRequest,
    actor: Actor = Depends(provide_actor),
    coordinator: ReviewCoordinator = Depends(provide_review_coordinator),
):
    result = coordinator.bulk_approve(body.ids, actor)
    return BulkApproveResponse(approvedCount=result.approved_count, questionIds=result.question_ids)
