from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
	gemini_timeout_seconds: float = Field(default=60, validation_alias="GEMINI_TIMEOUT_SECONDS")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# Backoff for transient model failures (503, overloaded, ...)
	ai_max_retries: int = Field(default=5, validation_alias="AI_MAX_RETRIES")
	ai_initial_retry_delay_ms: int = Field(default=3000, validation_alias="AI_INITIAL_RETRY_DELAY_MS")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	# Key of the single local learner document
	profile_key: str = Field(default="sprachheld_userData", validation_alias="PROFILE_KEY")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
	host: str = Field(default="127.0.0.1", validation_alias="HOST")
	port: int = Field(default=8000, validation_alias="PORT")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
