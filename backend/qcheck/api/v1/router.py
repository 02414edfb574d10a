from fastapi import APIRouter

from qcheck.api.v1 import admin, auth, papers, questions, review

router = APIRouter(prefix="/v1")
router.include_router(auth.router)
router.include_router(questions.router)
router.include_router(review.router)
router.include_router(papers.router)
router.include_router(admin.router)
