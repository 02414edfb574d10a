from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from qcheck.api.v1.converters import paper_response
from qcheck.api.v1.dependencies import provide_actor, provide_claim_service, provide_paper_admin_service
from qcheck.api.v1.schemas.paper import PaperDeleteResponse, PaperListResponse, PaperResponse
from qcheck.application.admin import PaperAdminService, PaperUpload
from qcheck.application.claims import ClaimService
from qcheck.domain.models import Actor, PaperRecord

router = APIRouter(tags=["papers"])


def _paper_list(rows: list[PaperRecord]) -> PaperListResponse:
    return PaperListResponse(papers=[paper_response(row) for row in rows], count=len(rows))


@router.get("/papers/available", response_model=PaperListResponse)
def list_available_papers(actor: Actor = Depends(provide_actor), service: ClaimService = Depends(provide_claim_service)):
    return _paper_list(service.list_available(actor))


@router.get("/papers/mine", response_model=PaperListResponse)
def list_my_papers(actor: Actor = Depends(provide_actor), service: ClaimService = Depends(provide_claim_service)):
    return _paper_list(service.list_claimed_by(actor))


@router.post("/papers/{paperId}/claim", response_model=PaperResponse)
def claim_paper(
    paperId: str,
    actor: Actor = Depends(provide_actor),
    service: ClaimService = Depends(provide_claim_service),
):
    return paper_response(service.claim(paperId, actor))


@router.get("/admin/papers", response_model=PaperListResponse)
def list_papers(actor: Actor = Depends(provide_actor), service: PaperAdminService = Depends(provide_paper_admin_service)):
    return _paper_list(service.list_papers(actor))


@router.get("/admin/papers/claimed", response_model=PaperListResponse)
def list_claimed_papers(actor: Actor = Depends(provide_actor), service: ClaimService = Depends(provide_claim_service)):
    return _paper_list(service.list_claimed(actor))


@router.post("/admin/papers", response_model=PaperListResponse, status_code=201)
def upload_papers(
    files: list[UploadFile] = File(...),
    actor: Actor = Depends(provide_actor),
    service: PaperAdminService = Depends(provide_paper_admin_service),
):
    uploads = [PaperUpload(filename=item.filename or "", payload=item.file.read()) for item in files]
    return _paper_list(service.upload_papers(actor, uploads))


@router.delete("/admin/papers/{paperId}", response_model=PaperDeleteResponse)
def delete_paper(
    paperId: str,
    actor: Actor = Depends(provide_actor),
    service: PaperAdminService = Depends(provide_paper_admin_service),
):
    service.delete_paper(actor, paperId)
    return PaperDeleteResponse(paperId=paperId)
