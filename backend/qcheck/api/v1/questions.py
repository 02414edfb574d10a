from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from qcheck.api.v1.converters import question_response, to_question_draft
from qcheck.api.v1.dependencies import provide_actor, provide_authoring_service
from qcheck.api.v1.schemas.question import (
    ImageUploadResponse,
    QuestionCountResponse,
    QuestionCreateRequest,
    QuestionIdsRequest,
    QuestionListResponse,
    QuestionResponse,
    QuestionWriteRequest,
)
from qcheck.application.authoring import AuthoringService
from qcheck.domain.models import Actor

router = APIRouter(tags=["questions"])


@router.post("/questions", response_model=QuestionResponse, status_code=201)
def create_question(
    body: QuestionCreateRequest,
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    row = service.create(actor, to_question_draft(body), submit=body.submit)
    return question_response(row)


@router.get("/questions/drafts", response_model=QuestionListResponse)
def list_drafts(
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    rows = service.list_drafts(actor)
    return QuestionListResponse(questions=[question_response(row) for row in rows], count=len(rows))


@router.get("/questions/submitted", response_model=QuestionListResponse)
def list_submitted(
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    rows = service.list_submitted(actor)
    return QuestionListResponse(questions=[question_response(row) for row in rows], count=len(rows))


@router.post("/questions/submit", response_model=QuestionCountResponse)
def submit_questions(
    body: QuestionIdsRequest,
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    return QuestionCountResponse(count=service.submit_many(actor, body.ids))


@router.post("/questions/delete", response_model=QuestionCountResponse)
def delete_drafts(
    body: QuestionIdsRequest,
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    return QuestionCountResponse(count=service.delete_drafts(actor, body.ids))


@router.get("/questions/{questionId}", response_model=QuestionResponse)
def get_question(
    questionId: str,
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    return question_response(service.get_question(actor, questionId))


@router.put("/questions/{questionId}", response_model=QuestionResponse)
def update_question(
    questionId: str,
    body: QuestionWriteRequest,
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    return question_response(service.update(actor, questionId, to_question_draft(body)))


@router.post("/questions/{questionId}/submit", response_model=QuestionResponse)
def submit_question(
    questionId: str,
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    return question_response(service.submit(questionId, actor))


@router.post("/questions/{questionId}/resubmit", response_model=QuestionResponse)
def resubmit_question(
    questionId: str,
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    return question_response(service.resubmit(questionId, actor))


@router.post("/uploads/images", response_model=ImageUploadResponse)
def upload_image(
    file: UploadFile = File(...),
    actor: Actor = Depends(provide_actor),
    service: AuthoringService = Depends(provide_authoring_service),
):
    stored = service.upload_image(actor, file.file.read())
    return ImageUploadResponse(url=stored.url, handle=stored.handle)
