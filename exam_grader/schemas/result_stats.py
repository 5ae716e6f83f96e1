from pydantic import BaseModel


class ScoreBucket(BaseModel):
    range: str
    min: float
    max: float
    count: int


class ResultStats(BaseModel):
    assessment_id: int
    assessment_name: str
    total_results: int
    average_score: float
    highest_score: float
    lowest_score: float
    pass_rate: float  # percent of results at or above the pass mark
    distribution: list[ScoreBucket]
