# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "billlens"

ANSWERS: Final[str] = f"{ROOT}:answers"  # cached QueryResponse JSON by query hash
