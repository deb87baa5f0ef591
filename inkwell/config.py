from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_path: str = "./data/inkwell.db"
    chroma_path: str = "./data/chroma"
    checkpoint_db_path: str = "./data/checkpoints.db"

    # Models
    research_model: str = "gpt-4o-mini"
    outline_model: str = "gpt-4o-mini"
    draft_model: str = "gpt-4o"
    edit_model: str = "gpt-4o-mini"

    # Topic discovery
    max_topics: int = 5
    duplicate_threshold: float = 0.85
    similarity_warning_threshold: float = 0.7

    # Editor
    save_debounce_seconds: float = 3.0
    edit_context_chars: int = 100

    # Streaming
    refetch_delay_seconds: float = 2.0

    # Linking
    max_link_suggestions: int = 5
    link_candidate_threshold: float = 0.7

    # HTTP client
    api_base_url: str = "http://localhost:8000"
    http_timeout_seconds: float = 120.0

settings = Settings()
