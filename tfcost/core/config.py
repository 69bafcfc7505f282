"""
Configuration module for loading environment variables.
Template locations, pricing endpoints and estimation constants live here.
"""
import logging
import os


class Config:
    """Application configuration loaded from environment variables."""

    # Template Configuration
    TEMPLATES_ROOT: str = os.getenv("TEMPLATES_ROOT", "templates")
    TEMPLATE_FILE_EXTENSION: str = ".tf"
    TFVARS_FILENAME: str = "terraform.tfvars"
    AUTO_TFVARS_SUFFIX: str = ".auto.tfvars"

    # Pricing Configuration
    PRICING_API_BASE_URL: str = os.getenv("PRICING_API_BASE_URL", "").rstrip("/")
    PRICING_API_TIMEOUT: float = float(os.getenv("PRICING_API_TIMEOUT", "10"))
    PRICING_CACHE_TTL_SECONDS: int = int(os.getenv("PRICING_CACHE_TTL_SECONDS", "86400"))  # 24 hours
    PRICING_CATALOG_PATH: str = os.getenv("PRICING_CATALOG_PATH", "")
    DEFAULT_REGION: str = os.getenv("DEFAULT_REGION", "")
    HOURS_PER_MONTH: int = 720  # 30 days x 24 hours
    DEFAULT_CURRENCY: str = "USD"

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> None:
        """
        Validates configuration values.

        Raises:
            ValueError: If any configuration value is invalid.
        """
        if cls.PRICING_API_BASE_URL and not cls.PRICING_API_BASE_URL.startswith(("http://", "https://")):
            raise ValueError(
                f"PRICING_API_BASE_URL must be a valid URL (got: {cls.PRICING_API_BASE_URL})"
            )
        if cls.PRICING_API_TIMEOUT <= 0:
            raise ValueError("PRICING_API_TIMEOUT must be positive")
        if cls.PRICING_CACHE_TTL_SECONDS < 0:
            raise ValueError("PRICING_CACHE_TTL_SECONDS must not be negative")
        if not isinstance(logging.getLevelName(cls.LOG_LEVEL), int):
            raise ValueError(f"LOG_LEVEL is not a logging level (got: {cls.LOG_LEVEL})")


config = Config()
