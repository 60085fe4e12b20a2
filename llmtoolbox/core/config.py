from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass(frozen=True)
class Settings:
    app_name: str = os.getenv("APP_NAME", "llmtoolbox")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # empty disables the call journal
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./toolbox_calls.db")

    # envelope key carrying the function name: "name" or "function_name"
    name_key: str = os.getenv("TOOLBOX_NAME_KEY", "name")
    # "openai" tool list or a single "one_of" schema
    schema_format: str = os.getenv("TOOLBOX_SCHEMA_FORMAT", "openai").lower()


settings = Settings()
