# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
import base64
from typing import List, Optional
from pathlib import Path

class Settings(BaseSettings):
    # Storage settings
    # Default to a local JSON file; override via .env (STORAGE_BACKEND=sqlite|sheets|memory)
    storage_backend: str = "json"
    json_db_path: str = "data/database.json"
    db_url: str = "sqlite:///data/requests.db"
    google_sa_json: str = ""
    google_sa_json_base64: str = ""
    sheets_spreadsheet_id: str = ""
    # Worksheet/tab that holds one row per request
    sheets_tab_name: str = "requests"

    # CORS settings
    allowed_origins: str = "http://localhost:5173,http://localhost:3000,http://localhost:3001"

    # Used to build the {{link}} placeholder in request emails.
    # Example final link: http://localhost:5173/request/REQ-001
    public_base_url: str = "http://localhost:5173"

    # Email settings
    notifications_enabled: bool = True
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_from_email: str = ""
    smtp_from_name: str = "Data Office"

    # Seconds before a single send attempt is treated as a delivery failure
    notify_timeout_seconds: float = 20.0
    # 1 = single attempt (no retry). >1 enables exponential backoff between attempts.
    notify_max_attempts: int = Field(default=1, ge=1, le=5)

    # Reminder loop
    reminders_enabled: bool = True
    reminder_check_interval_seconds: int = Field(default=3600, ge=5)

    log_level: str = "INFO"

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )

    def resolved_google_sa_json(self) -> str:
        """
        Return the path to the service account JSON.
        If GOOGLE_SA_JSON_BASE64 is set, decode it to a temp file.
        Otherwise return GOOGLE_SA_JSON path (or inline JSON).
        """
        if self.google_sa_json_base64:
            import tempfile

            decoded = base64.b64decode(self.google_sa_json_base64)
            temp_file = tempfile.NamedTemporaryFile(mode='w', delete=False, suffix='.json')
            temp_file.write(decoded.decode('utf-8'))
            temp_file.close()
            return temp_file.name

        return self.google_sa_json

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_from_email)


_settings_instance: Optional[Settings] = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
