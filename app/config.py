"""Application configuration"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    database_url: str = "sqlite:///./githook.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Git
    # Command used to run git; may carry extra arguments (e.g. "git -c core.quotepath=off").
    scm_git_command: str = "git"

    # Tracker
    # Markup flavor used for generated links: "textile", "markdown" or anything else for bare URLs.
    text_formatting: str = "textile"
    # Generated remark tickets are due this many days after creation.
    remark_due_days: int = 3

    # Periodic repository sync; 0 disables the background job.
    repository_sync_interval_minutes: int = 0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
