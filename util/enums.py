# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class QueryType(str, Enum):
    TAX = "tax_related"
    DEFENSE = "defense_related"
    ENVIRONMENT = "environment_related"
    AGRICULTURE = "agriculture_related"
    BANKING = "banking_related"
    ENERGY = "energy_related"
    IMPACT = "impact_analysis"
    DEFINITION = "definition_request"
    GENERAL = "general_inquiry"


class SearchMode(str, Enum):
    KEYWORD = "keyword"
    COMBINED = "combined"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    UNAUTHORIZED = ErrorInfo("Unauthorized", status.HTTP_401_UNAUTHORIZED)
    SECTION_NOT_FOUND = ErrorInfo("Section not found", status.HTTP_404_NOT_FOUND)
    SEARCH_TERM_REQUIRED = ErrorInfo("Search term is required", status.HTTP_400_BAD_REQUEST)


# Error kind (BillLensError.kind) -> HTTP status for the query endpoint.
ERROR_HTTP_STATUS: dict[str, int] = {
    "invalid_query": status.HTTP_400_BAD_REQUEST,
    "rate_limited": status.HTTP_429_TOO_MANY_REQUESTS,
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "transport_error": status.HTTP_502_BAD_GATEWAY,
    "model_api_error": status.HTTP_502_BAD_GATEWAY,
    "malformed_model_output": status.HTTP_502_BAD_GATEWAY,
    "cancelled": 499,
}
