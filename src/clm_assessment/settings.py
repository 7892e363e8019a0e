"""Service settings.

All configuration is read from the environment using the CLM_ASSESSMENT_
prefix (for example ``CLM_ASSESSMENT_DATABASE_URL``).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for clm-assessment.

    Environment variable prefix: CLM_ASSESSMENT_
    """

    service_name: str = "clm-assessment"

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./survey.db"
    database_echo: bool = False

    # Autosave
    autosave_debounce_seconds: float = 1.0

    # Results gating (live overall completion, percent)
    min_completion_for_results: float = 50.0
    min_completion_for_meaningful: float = 80.0

    # Admin listing
    admin_page_size_default: int = 20
    admin_page_size_max: int = 100

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(env_prefix="CLM_ASSESSMENT_")
