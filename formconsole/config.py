from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_VERBS = ("GET", "POST", "PUT", "DELETE")
PERSISTENCE_BACKENDS = {"database", "memory"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FORM_CONSOLE_", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    database_url: str = Field(default="sqlite:///./form_console.db")
    persistence_backend: str = Field(default="database")

    upstream_base_url: str = Field(default="http://127.0.0.1:8080")
    upstream_timeout_sec: float = Field(default=15.0, ge=0.5, le=300.0)
    max_consoles: int = Field(default=32, ge=1, le=1024)

    verbs: str = Field(default=",".join(DEFAULT_VERBS))
    single_verb: bool = Field(default=False)
    single_verb_method: str = Field(default="POST")

    def parsed_verbs(self) -> tuple[str, ...]:
        verbs: list[str] = []
        for value in self.verbs.split(","):
            verb = value.strip().upper()
            if verb and verb not in verbs:
                verbs.append(verb)
        return tuple(verbs)

    def console_verbs(self) -> tuple[str, ...]:
        if self.single_verb:
            return (self.single_verb_method.strip().upper() or "POST",)
        return self.parsed_verbs()

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    @staticmethod
    def _contains_placeholder(value: str) -> bool:
        return "replace-with" in value.strip().lower()

    def production_safety_errors(self) -> list[str]:
        errors: list[str] = []

        backend = self.persistence_backend.strip().lower()
        if backend not in PERSISTENCE_BACKENDS:
            errors.append(
                f"FORM_CONSOLE_PERSISTENCE_BACKEND must be one of {sorted(PERSISTENCE_BACKENDS)}"
            )

        if not self.parsed_verbs() and not self.single_verb:
            errors.append("FORM_CONSOLE_VERBS must name at least one HTTP verb")

        if not self.is_production():
            return errors

        if backend != "database":
            errors.append("FORM_CONSOLE_PERSISTENCE_BACKEND must be `database` in production")

        if self.database_url.strip().lower().startswith("sqlite"):
            errors.append("FORM_CONSOLE_DATABASE_URL must not use sqlite in production")

        if not self.upstream_base_url.strip().lower().startswith("https://"):
            errors.append("FORM_CONSOLE_UPSTREAM_BASE_URL must use https:// in production")

        if self._contains_placeholder(self.database_url):
            errors.append("FORM_CONSOLE_DATABASE_URL must not use placeholder values in production")

        if self._contains_placeholder(self.upstream_base_url):
            errors.append("FORM_CONSOLE_UPSTREAM_BASE_URL must not use placeholder values in production")

        return errors


def get_settings() -> Settings:
    return Settings()
