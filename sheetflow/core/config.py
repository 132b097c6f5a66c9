from typing import List

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./sheetflow.db"
    debug: bool = True
    log_level: str = "INFO"
    upload_dir: str = "./uploads"
    upload_max_file_size_mb: int = 100

    # Schema inference
    inference_sample_rows: int = 100      # Data rows read (after the header) when inferring
    inference_match_threshold: float = 1.0  # Fraction of non-empty cells a type must parse

    # Import execution
    import_batch_size: int = 500
    source_read_timeout_seconds: int = 30
    row_store_timeout_seconds: int = 30

    # Read endpoints
    preview_row_limit: int = 20

    allowed_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()
