from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2024.06.v1"
    database_url: str = "sqlite:///./portfolio_engine.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Tenancy lifecycle ----
    tenancy_requires_signature: bool = False
    default_rent_due_day: int = 1

    # ---- Late fees ----
    late_fee_policy: str = "none"  # none|flat|percent
    late_fee_flat_amount: float = 0.0
    late_fee_percent: float = 0.0  # 0.05 == 5% of period rent
    late_fee_grace_days: int = 0

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    celery_task_always_eager: bool = False

    # ---- Financial reports ----
    report_generation_timeout_seconds: int = 15 * 60
    report_sweep_interval_seconds: int = 5 * 60
    report_max_retries: int = 3

    # ---- Dashboards ----
    upcoming_inspection_window_days: int = 30

    def model_post_init(self, __context) -> None:
        policy = (self.late_fee_policy or "none").strip().lower()
        if policy not in ("none", "flat", "percent"):
            raise ValueError(f"late_fee_policy must be none|flat|percent, got {self.late_fee_policy!r}")
        object.__setattr__(self, "late_fee_policy", policy)

        if not 1 <= int(self.default_rent_due_day) <= 31:
            raise ValueError("default_rent_due_day must be between 1 and 31")

        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
