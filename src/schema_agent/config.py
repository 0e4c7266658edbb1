from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from pathlib import Path
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    output_dir: Path = Field(default=Path("./out"), alias="SCHEMA_OUTPUT_DIR")
    default_dialect: Literal["mysql", "postgresql"] = Field(default="postgresql", alias="SCHEMA_DEFAULT_DIALECT")
    diagram_theme: str | None = Field(default=None, alias="SCHEMA_DIAGRAM_THEME")
    watch_debounce: float = Field(default=0.8, alias="SCHEMA_WATCH_DEBOUNCE")

    azure_openai_endpoint: str | None = Field(default=None, alias="AZURE_OPENAI_ENDPOINT")
    azure_openai_api_key: str | None = Field(default=None, alias="AZURE_OPENAI_API_KEY")
    openai_api_version: str = Field(default="2024-06-01", alias="OPENAI_API_VERSION")
    azure_openai_deployment: str | None = Field(default=None, alias="AZURE_OPENAI_DEPLOYMENT")

settings = Settings()
