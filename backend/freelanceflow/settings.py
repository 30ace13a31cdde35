from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("NODE_ENV", "ENVIRONMENT"),
    )
    port: int = Field(default=5000, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS / Frontend
    frontend_url: str | None = Field(default=None, validation_alias="FRONTEND_URL")
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # AWS / data
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    ddb_table_name: str | None = Field(default=None, validation_alias="DDB_TABLE_NAME")
    # Local development against DynamoDB Local / LocalStack.
    ddb_endpoint_url: str | None = Field(default=None, validation_alias="DDB_ENDPOINT_URL")

    # Auth (HS256 bearer tokens)
    jwt_secret: str | None = Field(default=None, validation_alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    jwt_expire_minutes: int = Field(default=60 * 24 * 30, validation_alias="JWT_EXPIRE_MINUTES")

    # Pluggable collaborators
    # log | outbox | none
    notifications_backend: str = Field(default="log", validation_alias="NOTIFICATIONS_BACKEND")
    # dynamodb | none
    finance_backend: str = Field(default="dynamodb", validation_alias="FINANCE_BACKEND")
    # dynamodb | none
    audit_backend: str = Field(default="dynamodb", validation_alias="AUDIT_BACKEND")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        if v == "test":
            return "test"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def is_development(self) -> bool:
        return self.normalized_environment == "development"

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development/test are allowed to run with partial config for local work,
        but production must be fully configured.
        """
        if not self.is_production:
            return

        missing: list[str] = []

        if not self.ddb_table_name:
            missing.append("DDB_TABLE_NAME")
        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        def _has(v: object) -> bool:
            return v is not None and str(v).strip() != ""

        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "frontend": {
                "frontend_url": self.frontend_url,
                "frontend_urls": self.frontend_urls,
            },
            "aws": {
                "aws_region": self.aws_region,
                "ddb_table_name": self.ddb_table_name,
                "ddb_endpoint_url": self.ddb_endpoint_url,
            },
            "auth": {
                "jwt_secret_configured": _has(self.jwt_secret),
                "jwt_algorithm": self.jwt_algorithm,
                "jwt_expire_minutes": self.jwt_expire_minutes,
            },
            "backends": {
                "notifications": self.notifications_backend,
                "finance": self.finance_backend,
                "audit": self.audit_backend,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


# Backwards-compatible module-level singleton.
settings = get_settings()
