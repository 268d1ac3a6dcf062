import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # Database
    database_url: str = os.getenv("SQLALCHEMY_DATABASE_URL", "sqlite:///./library.db")

    # Overdue sweeper
    overdue_sweep_interval_hours: float = float(
        os.getenv("OVERDUE_SWEEP_INTERVAL_HOURS", "24")
    )

    # Sample catalog and accounts for a fresh database
    seed_sample_data: bool = _env_flag("SEED_SAMPLE_DATA")

    # Server
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def overdue_sweep_interval_seconds(self) -> float:
        return self.overdue_sweep_interval_hours * 3600


settings = Settings()
