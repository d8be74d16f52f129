from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    kind: str
    title: str
    message: str
    link: Optional[str]
    payload: Optional[dict[str, Any]]
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
