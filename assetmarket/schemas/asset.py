from datetime import datetime

from pydantic import BaseModel, Field


class MintRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=64)
    uri: str = Field(..., min_length=1, max_length=2048)


class AssetResponse(BaseModel):
    id: int
    owner_id: str
    uri: str
    transfer_count: int
    listed: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
