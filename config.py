"""
Configuration management for the Contact Extraction API.

Reads tunables from environment variables (prefix CARD_ENGINE_) and
hands them to the engine through constructor arguments.
"""

import os
import logging
from typing import Optional
from dotenv import load_dotenv

from cardrecon.dedup import SimilarityConfig
from cardrecon.pipeline import default_workers

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Application configuration class.

    Attributes:
        DEBUG: Enable debug mode
        TESTING: Enable testing mode
        SECRET_KEY: Flask secret key
        MAX_CONTENT_LENGTH: Maximum request body size (4MB default)
        SIMILARITY_THRESHOLD: Averaged score at which two contacts merge
        NAME_SIMILARITY_THRESHOLD: Name similarity must exceed this to count
        COMPANY_SIMILARITY_THRESHOLD: Company similarity must exceed this to count
        PARALLEL_WORKERS: Size of the per-batch image pool
        VISION_TIMEOUT: Seconds per external vision call (0 = no timeout)
        CROSS_IMAGE_DEDUP: Deduplicate across the images of a batch
    """

    # Flask Settings
    DEBUG: bool = _env_bool("CARD_ENGINE_DEBUG")
    TESTING: bool = _env_bool("CARD_ENGINE_TESTING")
    SECRET_KEY: str = os.getenv("CARD_ENGINE_SECRET_KEY", "dev-secret-key-change-in-production")
    MAX_CONTENT_LENGTH: int = int(os.getenv("CARD_ENGINE_MAX_CONTENT_LENGTH", str(4 * 1024 * 1024)))

    # Deduplication
    SIMILARITY_THRESHOLD: float = float(os.getenv("CARD_ENGINE_SIMILARITY_THRESHOLD", "0.7"))
    NAME_SIMILARITY_THRESHOLD: float = float(os.getenv("CARD_ENGINE_NAME_SIMILARITY_THRESHOLD", "0.8"))
    COMPANY_SIMILARITY_THRESHOLD: float = float(os.getenv("CARD_ENGINE_COMPANY_SIMILARITY_THRESHOLD", "0.7"))

    # Batch processing
    PARALLEL_WORKERS: int = int(os.getenv("CARD_ENGINE_PARALLEL_WORKERS", str(default_workers())))
    VISION_TIMEOUT: float = float(os.getenv("CARD_ENGINE_VISION_TIMEOUT", "0"))
    CROSS_IMAGE_DEDUP: bool = _env_bool("CARD_ENGINE_CROSS_IMAGE_DEDUP", "True")

    # Logging
    LOG_LEVEL: str = os.getenv("CARD_ENGINE_LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def init_app(cls, app) -> None:
        """Initialize Flask app with configuration.

        Args:
            app: Flask application instance
        """
        app.config.from_object(cls)
        app.config["PIPELINE_OPTIONS"] = cls.pipeline_options()

        # Configure logging
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL.upper()),
            format=cls.LOG_FORMAT
        )

        logger.info("Configuration initialized successfully")

    @classmethod
    def similarity_config(cls) -> SimilarityConfig:
        """Build the deduplication thresholds from this profile."""
        return SimilarityConfig(
            threshold=cls.SIMILARITY_THRESHOLD,
            name_threshold=cls.NAME_SIMILARITY_THRESHOLD,
            company_threshold=cls.COMPANY_SIMILARITY_THRESHOLD,
        )

    @classmethod
    def pipeline_options(cls) -> dict:
        """Keyword arguments for CardPipeline.

        Returns:
            Dictionary with similarity, max_workers, timeout and cross_image_dedup
        """
        return {
            "similarity": cls.similarity_config(),
            "max_workers": cls.PARALLEL_WORKERS,
            "timeout": cls.VISION_TIMEOUT or None,
            "cross_image_dedup": cls.CROSS_IMAGE_DEDUP,
        }


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    LOG_LEVEL = "INFO"


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = True
    LOG_LEVEL = "DEBUG"
    PARALLEL_WORKERS = 2


# Configuration mapping
config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> Config:
    """Get configuration class by name.

    Args:
        config_name: Configuration name (development, production, testing)

    Returns:
        Configuration class
    """
    if config_name is None:
        config_name = os.getenv("CARD_ENGINE_ENV", "development")
    return config_by_name.get(config_name, DevelopmentConfig)
