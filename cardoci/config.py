"""
Configuration module for card-oci.

Loads all configuration from environment variables with sensible defaults.
"""

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Card-oci configuration from environment variables.

    Loads all configuration values from environment variables with sensible defaults.
    All settings can be overridden by setting the corresponding environment variable,
    and most of them by the matching command line flag.
    """

    def __init__(self):
        """
        Initialize configuration from environment variables.

        Environment Variables:
            LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO
            FLASK_HOST: Server bind address. Default: 0.0.0.0
            FLASK_PORT: Deck server bind port. Default: 8080
            REGISTRY_PORT: Registry server bind port. Default: 5000
            DECK_FILE: Deck definition file. Default: cards.txt
            CARD_IMAGES_DIR: Directory holding the card PNG files. Default: PNG-cards-1.3
            PLAIN_HTTP: Talk to registries over HTTP instead of HTTPS. Default: false
            TRANSFER_CONCURRENCY: Parallel blob transfers per copy. Default: 3
            REGISTRY_TIMEOUT: Registry request timeout in seconds. Default: 30
            MAX_TAG_LENGTH: Maximum tag length. Default: 128
            MAX_REPOSITORY_LENGTH: Maximum repository name length. Default: 255
        """
        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

        # Server
        self.FLASK_HOST = os.getenv("FLASK_HOST", "0.0.0.0")
        self.FLASK_PORT = int(os.getenv("FLASK_PORT", "8080"))
        self.REGISTRY_PORT = int(os.getenv("REGISTRY_PORT", "5000"))

        # Deck input
        self.DECK_FILE = os.getenv("DECK_FILE", "cards.txt")
        self.CARD_IMAGES_DIR = os.getenv("CARD_IMAGES_DIR", "PNG-cards-1.3")

        # Registry transport
        self.PLAIN_HTTP = _env_bool("PLAIN_HTTP", "false")
        self.TRANSFER_CONCURRENCY = int(os.getenv("TRANSFER_CONCURRENCY", "3"))
        self.REGISTRY_TIMEOUT = float(os.getenv("REGISTRY_TIMEOUT", "30"))  # seconds

        # Validation limits
        self.MAX_TAG_LENGTH = int(os.getenv("MAX_TAG_LENGTH", "128"))
        self.MAX_REPOSITORY_LENGTH = int(os.getenv("MAX_REPOSITORY_LENGTH", "255"))

    def __repr__(self):
        """String representation for logging."""
        return (
            f"Config(LOG_LEVEL={self.LOG_LEVEL}, "
            f"FLASK_HOST={self.FLASK_HOST}, "
            f"FLASK_PORT={self.FLASK_PORT}, "
            f"REGISTRY_PORT={self.REGISTRY_PORT}, "
            f"CARD_IMAGES_DIR={self.CARD_IMAGES_DIR}, "
            f"PLAIN_HTTP={self.PLAIN_HTTP}, "
            f"TRANSFER_CONCURRENCY={self.TRANSFER_CONCURRENCY})"
        )


# Global config instance
config = Config()
