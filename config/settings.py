# config/settings.py
import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    DOCUMENT_PATH: str = Field(
        default="docs/BILLS-119hr1eas.xml", validation_alias="DOCUMENT_PATH"
    )
    DOCUMENT_TITLE: str = Field(default="H.R. 1 (2025)", validation_alias="DOCUMENT_TITLE")

    # Cache
    REDIS_URL: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    CACHE_ENABLED: bool = Field(default=True, validation_alias="CACHE_ENABLED")
    CACHE_TTL_SECONDS: int = Field(default=3600, validation_alias="CACHE_TTL_SECONDS")

    # CORS, Limits & Admin
    ALLOWED_ORIGIN: str = Field(default="http://localhost:3000", validation_alias="ALLOWED_ORIGIN")
    RATE_LIMIT_TIMES: int = Field(default=30, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")
    ADMIN_KEY: str = Field(default="", validation_alias="ADMIN_KEY")
    MAX_QUERY_CHARS: int = Field(default=1000, validation_alias="MAX_QUERY_CHARS")

    # Anthropic Settings
    ANTHROPIC_API_KEY: str = Field(default="", validation_alias="ANTHROPIC_API_KEY")
    ANTHROPIC_API_URL: str = Field(
        default="https://api.anthropic.com/v1/messages", validation_alias="ANTHROPIC_API_URL"
    )
    ANTHROPIC_MODEL: str = Field(
        default="claude-3-5-sonnet-20241022", validation_alias="ANTHROPIC_MODEL"
    )
    ANTHROPIC_VERSION: str = Field(default="2023-06-01", validation_alias="ANTHROPIC_VERSION")
    ANTHROPIC_MAX_TOKENS: int = Field(default=3000, validation_alias="ANTHROPIC_MAX_TOKENS")
    ANTHROPIC_TEMPERATURE: float = Field(default=0.1, validation_alias="ANTHROPIC_TEMPERATURE")
    LLM_TIMEOUT_SECONDS: float = Field(default=60.0, validation_alias="LLM_TIMEOUT_SECONDS")
    MAX_TOOL_ITERATIONS: int = Field(default=3, ge=1, validation_alias="MAX_TOOL_ITERATIONS")

    # Logging knobs
    LOGGER_NAME: str = "bill-lens"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    # Prompts
    QUERY_SYSTEM_PROMPT: str = (
        "You are an expert analyst helping citizens understand legislation. You are analyzing "
        "H.R. 1 (2025), a comprehensive bill covering multiple policy areas including agriculture, "
        "defense, banking, energy, environment, and tax policy.\n"
        "\n"
        "You have tools to search the bill text:\n"
        "- search_by_topic: sections related to a policy topic (tax, defense, agriculture, energy, "
        "environment, banking, healthcare, education, immigration, housing)\n"
        "- search_financial_impact: sections about appropriations, funding, costs, budget, "
        "spending, revenue or tax changes\n"
        "- search_sections: keyword search\n"
        "- get_section_by_id: one section by its ID (use sparingly)\n"
        "- get_bill_overview: high-level overview of the bill (use if needed for context)\n"
        "\n"
        "RULES:\n"
        "- Answer ONLY from section text returned by the tools. Cite the section IDs you used.\n"
        "- Be strategic: prefer topic and financial-impact searches over general searches.\n"
        "- If the tools return nothing relevant, say so and set confidence to low.\n"
        "\n"
        "OUTPUT: a single JSON object, no code fences:\n"
        '{"answer":"<comprehensive answer>","sections":["<section ids>"],'
        '"keyPoints":["<key takeaways>"],"implications":"<what this means for the reader>",'
        '"confidence":"high|medium|low"}\n'
    )

    FINAL_ANSWER_INSTRUCTION: str = (
        "You have reached the tool limit. Do not call any more tools. Based only on the "
        "information gathered above, provide your final JSON response using this exact format: "
        '{"answer": "comprehensive answer", "sections": ["relevant section IDs"], '
        '"keyPoints": ["key takeaways"], "implications": "what this means", '
        '"confidence": "high/medium/low"}'
    )


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
