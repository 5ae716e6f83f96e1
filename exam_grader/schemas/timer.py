from datetime import datetime

from pydantic import BaseModel, Field


class AttemptTimer(BaseModel):
    assessment_id: int
    # absolute instant, never a relative countdown
    expires_at: datetime
    total_duration_seconds: int = Field(gt=0)
