from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Message(BaseModel):
    message: str


class Timestamped(BaseModel):
    created_at: Optional[datetime] = Field(default=None)
