from datetime import datetime

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """Read-only snapshot of a ledger row, taken once per request."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    email: str
    created_at: datetime
    request_count: int = 0
    last_login: datetime | None = None
    paid_until: datetime | None = None
