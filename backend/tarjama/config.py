from pathlib import Path
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    database_url: str = f"sqlite:///{BASE_DIR / 'tarjama.db'}"
    anthropic_api_key: str = ""
    gemini_key: str = ""
    openai_key: str = ""
    log_dir: Path = BASE_DIR / "data" / "logs"

    llm_timeout: int = 60
    generation_max_tokens: int = 2048
    grading_max_tokens: int = 512

    default_question_count: int = 5
    max_question_count: int = 20
    max_active_quizzes: int = 200
    persistence_retries: int = 1

    model_config = {"env_file": [BASE_DIR / ".env", BASE_DIR.parent / ".env"], "extra": "ignore"}


settings = Settings()
