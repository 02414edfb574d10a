from pydantic import BaseModel


class PaperResponse(BaseModel):
    paperId: str
    name: str
    sourceUrl: str
    uploadedBy: str | None = None
    claimedBy: str | None = None
    createdAt: str | None = None


class PaperListResponse(BaseModel):
    papers: list[PaperResponse]
    count: int


class PaperDeleteResponse(BaseModel):
    ok: bool = True
    paperId: str
