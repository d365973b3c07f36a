# model/tools.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from core.retrieval import FINANCIAL_IMPACT_KEYWORDS, TOPIC_KEYWORDS


class ToolArgs(BaseModel):
    # Models occasionally send extra keys; ignore them instead of failing the call.
    model_config = ConfigDict(extra="ignore")


class SearchSectionsArgs(ToolArgs):
    query: str = Field(
        min_length=1,
        description="Search query - keywords or phrases to find relevant sections",
    )
    maxResults: int = Field(
        default=5, ge=1, description="Maximum number of results to return (default: 5)"
    )


class SearchByTopicArgs(ToolArgs):
    topic: str = Field(
        description="Policy topic to search for",
        json_schema_extra={"enum": list(TOPIC_KEYWORDS)},
    )
    maxResults: int = Field(
        default=5, ge=1, description="Maximum number of results to return (default: 5)"
    )

    @field_validator("topic")
    @classmethod
    def _known_topic(cls, v: str) -> str:
        key = v.strip().lower()
        if key not in TOPIC_KEYWORDS:
            raise ValueError(f"topic must be one of {', '.join(TOPIC_KEYWORDS)}")
        return key


class SearchFinancialImpactArgs(ToolArgs):
    impactType: str = Field(
        description="Type of financial impact to search for",
        json_schema_extra={"enum": list(FINANCIAL_IMPACT_KEYWORDS)},
    )
    maxResults: int = Field(
        default=5, ge=1, description="Maximum number of results to return (default: 5)"
    )

    @field_validator("impactType")
    @classmethod
    def _known_impact(cls, v: str) -> str:
        key = v.strip().lower()
        if key not in FINANCIAL_IMPACT_KEYWORDS:
            raise ValueError(
                f"impactType must be one of {', '.join(FINANCIAL_IMPACT_KEYWORDS)}"
            )
        return key


class GetSectionByIdArgs(ToolArgs):
    sectionId: str = Field(min_length=1, description="The ID of the section to retrieve")


class GetBillOverviewArgs(ToolArgs):
    pass
