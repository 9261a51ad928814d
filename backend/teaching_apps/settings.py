from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Teaching Apps", validation_alias="OPENROUTER_TITLE")

	# Image generation (any OpenAI-compatible images endpoint)
	image_api_key: str | None = Field(default=None, validation_alias="IMAGE_API_KEY")
	image_api_base_url: str = Field(default="https://api.openai.com/v1/images/generations", validation_alias="IMAGE_API_BASE_URL")
	image_model: str = Field(default="dall-e-3", validation_alias="IMAGE_MODEL")

	# Password gate; leave unset to keep every app open
	app_password: str | None = Field(default=None, validation_alias="APP_PASSWORD")
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=720, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

	# Blockchain demo
	demo_chain_size: int = Field(default=5, validation_alias="DEMO_CHAIN_SIZE")
	demo_session_idle_minutes: int = Field(default=120, validation_alias="DEMO_SESSION_IDLE_MINUTES")
	demo_max_sessions: int = Field(default=1000, validation_alias="DEMO_MAX_SESSIONS")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
