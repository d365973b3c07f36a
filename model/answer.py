# model/answer.py
from enum import Enum
from typing import Final
from pydantic import BaseModel, Field

DEFAULT_IMPLICATIONS: Final[str] = "Based on the analysis provided above."


class Confidence(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class StructuredAnswer(BaseModel):
    answer: str
    sections: list[str] = Field(default_factory=list)
    keyPoints: list[str] = Field(default_factory=list)
    implications: str = DEFAULT_IMPLICATIONS
    confidence: Confidence = Confidence.medium
