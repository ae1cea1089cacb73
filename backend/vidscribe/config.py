from dotenv import load_dotenv
import os

from .errors import ConfigurationError

load_dotenv()

REQUIRED_SETTINGS = {
    "database_url": "DATABASE_URL",
    "supabase_url": "SUPABASE_URL",
    "supabase_anon_key": "SUPABASE_ANON_KEY",
    "supabase_service_key": "SUPABASE_SERVICE_KEY",
    "assembly_ai_api_key": "ASSEMBLY_AI_API_KEY",
    "stripe_secret_key": "STRIPE_SECRET_KEY",
    "stripe_webhook_secret": "STRIPE_WEBHOOK_SECRET",
}


class Config:
    def __init__(self):
        def env_bool(name: str, default: str = "false") -> bool:
            return (os.getenv(name, default) or default).strip().lower() in {"1", "true", "yes", "on"}

        def env_str(name: str, default: str = "") -> str:
            return (os.getenv(name, default) or default).strip()

        # Data store and Supabase (auth + storage)
        self.database_url = env_str("DATABASE_URL")
        self.sql_echo = env_bool("SQL_ECHO")
        self.supabase_url = env_str("SUPABASE_URL").rstrip("/")
        self.supabase_anon_key = env_str("SUPABASE_ANON_KEY")
        self.supabase_service_key = env_str("SUPABASE_SERVICE_KEY")
        self.storage_bucket = env_str("STORAGE_BUCKET", "videos")
        self.max_upload_size_mb = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100"))

        # Speech-to-text provider
        self.assembly_ai_api_key = env_str("ASSEMBLY_AI_API_KEY")
        self.assembly_ai_base_url = env_str("ASSEMBLY_AI_BASE_URL", "https://api.assemblyai.com/v2").rstrip("/")
        self.http_timeout_seconds = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

        # Payment processor
        self.stripe_secret_key = env_str("STRIPE_SECRET_KEY")
        self.stripe_webhook_secret = env_str("STRIPE_WEBHOOK_SECRET")
        self.app_origin = env_str("APP_ORIGIN", "http://localhost:5173").rstrip("/")

        # Client polling / history defaults
        self.poll_interval_seconds = float(os.getenv("POLL_INTERVAL_SECONDS", "5"))
        self.poll_max_failures = int(os.getenv("POLL_MAX_FAILURES", "3"))
        self.history_page_size = int(os.getenv("HISTORY_PAGE_SIZE", "5"))

        self.cors_origins = [
            origin.strip()
            for origin in env_str("CORS_ORIGINS", self.app_origin).split(",")
            if origin.strip()
        ]
        self.log_level = env_str("LOG_LEVEL", "INFO").upper()

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def missing_settings(self) -> list[str]:
        return [env_name for attr, env_name in REQUIRED_SETTINGS.items() if not getattr(self, attr)]

    def validate(self) -> "Config":
        """Raise ConfigurationError naming every required value that is unset."""
        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                details={"missing": missing},
            )
        return self
