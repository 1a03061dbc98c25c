from pydantic import ConfigDict, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

SUPPORTED_ALGORITHMS = ("SHA-256", "SHA-384", "SHA-512")


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Signing
    signing_secret: SecretStr | None = None
    per_app_keys: bool = False

    # Proof of Work
    pow_algorithm: str = "SHA-256"
    pow_salt_bytes: int = 16
    pow_min_difficulty: int = 1_000
    pow_max_difficulty: int = 1_000_000
    pow_default_difficulty: int = 50_000
    pow_min_ttl_seconds: int = 30
    pow_max_ttl_seconds: int = 3600  # 1 hour
    pow_default_ttl_seconds: int = 600  # 10 minutes

    # Replay protection (single-use ledger, in-memory)
    replay_protection_enabled: bool = False
    replay_purge_interval_seconds: int = 60

    # Rate Limiting
    rate_limit_challenges: str = "30/minute"
    rate_limit_verifications: str = "60/minute"
    trust_forwarded_for: bool = True  # behind a proxy that sets X-Forwarded-For

    # CORS
    cors_origins: list[str] | str = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("pow_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v.upper() not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported algorithm: {v}")
        return v.upper()

    @field_validator("pow_salt_bytes")
    @classmethod
    def validate_salt_bytes(cls, v: int) -> int:
        if v < 16:
            raise ValueError("Salt must be at least 16 bytes")
        return v

    @model_validator(mode="after")
    def validate_policy_bounds(self) -> "Settings":
        """Reject bounds where min <= default <= max does not hold."""
        difficulty = (self.pow_min_difficulty, self.pow_default_difficulty, self.pow_max_difficulty)
        if not (1 <= difficulty[0] <= difficulty[1] <= difficulty[2]):
            raise ValueError("Difficulty bounds must satisfy 1 <= min <= default <= max")
        ttl = (self.pow_min_ttl_seconds, self.pow_default_ttl_seconds, self.pow_max_ttl_seconds)
        if not (1 <= ttl[0] <= ttl[1] <= ttl[2]):
            raise ValueError("TTL bounds must satisfy 1 <= min <= default <= max")
        return self


settings = Settings()
