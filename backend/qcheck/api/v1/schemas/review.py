from pydantic import BaseModel


class RejectRequest(BaseModel):
    comment: str = ""


class BulkApproveRequest(BaseModel):
    ids: list[str]


class BulkApproveResponse(BaseModel):
    approvedCount: int
    questionIds: list[str]
