from pydantic import BaseModel


class IngestResponse(BaseModel):
    id: str
    received_at: str


class PurgeResponse(BaseModel):
    deleted_events: int
    cutoff: str
