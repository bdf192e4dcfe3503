"""
Configuration Management for imageset
Centralizes all environment-based configuration and settings
"""

import os
import re
import logging
from logging.handlers import RotatingFileHandler


class HealthCheckFilter(logging.Filter):
    """Filter out health check requests to reduce log noise"""
    def filter(self, record: logging.LogRecord) -> bool:
        # For uvicorn access logs, the message format is:
        # 'IP:PORT - "METHOD /path HTTP/1.1" STATUS'
        message = record.getMessage()
        if '200 OK' in message or '200' in str(getattr(record, 'args', '')):
            if '/health' in message:
                return False
        return True


def setup_logging(level: str = 'INFO'):
    """Configure application logging with rotation"""
    from .paths import LOG_DIR

    os.makedirs(LOG_DIR, mode=0o700, exist_ok=True)

    root_logger = logging.getLogger()

    # Close and clear any existing handlers to prevent file descriptor leaks
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    # Max 10MB per file, keep 7 backups
    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, 'imageset.log'),
        maxBytes=10*1024*1024,
        backupCount=7,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(console_formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(HealthCheckFilter())


def _env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment ('1', 'true', 'yes', 'on')"""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class AppConfig:
    """Main application configuration"""

    from .paths import CATALOG_DIR as DEFAULT_CATALOG_DIR

    # Server settings
    HOST = os.getenv('IMAGESET_HOST', '0.0.0.0')
    PORT = int(os.getenv('IMAGESET_PORT', 7070))

    # Logging
    LOG_LEVEL = os.getenv('IMAGESET_LOG_LEVEL', 'INFO')

    # Tracked release stream
    REGISTRY_URL = os.getenv('IMAGESET_REGISTRY_URL', 'https://registry-1.docker.io')
    AUTH_URL = os.getenv('IMAGESET_AUTH_URL', 'https://auth.docker.io/token')
    AUTH_SERVICE = os.getenv('IMAGESET_AUTH_SERVICE', 'registry.docker.io')
    REPOSITORY = os.getenv('IMAGESET_REPOSITORY', 'rancher/server')
    TOKEN_SAFETY_MARGIN_SECONDS = int(os.getenv('IMAGESET_TOKEN_SAFETY_MARGIN_SECONDS', 30))
    HTTP_TIMEOUT_SECONDS = float(os.getenv('IMAGESET_HTTP_TIMEOUT_SECONDS', 10))

    # Tag synchronization
    INCLUDE_PRERELEASE = _env_bool('IMAGESET_INCLUDE_PRERELEASE', False)
    PRERELEASE_PATTERN = os.getenv('IMAGESET_PRERELEASE_PATTERN', r'-rc[0-9]+$')
    SYNC_INTERVAL_MINUTES = int(os.getenv('IMAGESET_SYNC_INTERVAL_MINUTES', 12 * 60))
    # Keep below `ulimit -n`; each in-flight digest lookup holds a socket
    SYNC_BATCH_SIZE = int(os.getenv('IMAGESET_SYNC_BATCH_SIZE', 128))

    # Catalog and raw metadata sources
    CATALOG_URL = os.getenv('IMAGESET_CATALOG_URL', 'https://git.rancher.io/rancher-catalog')
    CATALOG_DIR = os.getenv('IMAGESET_CATALOG_DIR', DEFAULT_CATALOG_DIR)
    RAW_CONTENT_URL = os.getenv('IMAGESET_RAW_CONTENT_URL', 'https://raw.githubusercontent.com')

    @classmethod
    def validate(cls):
        """Validate configuration"""
        if cls.PORT < 1 or cls.PORT > 65535:
            raise ValueError(f"Invalid port: {cls.PORT}")

        if cls.SYNC_INTERVAL_MINUTES < 1:
            raise ValueError(f"Sync interval must be at least 1 minute: {cls.SYNC_INTERVAL_MINUTES}")

        if cls.SYNC_BATCH_SIZE < 1:
            raise ValueError(f"Sync batch size must be positive: {cls.SYNC_BATCH_SIZE}")

        if cls.TOKEN_SAFETY_MARGIN_SECONDS < 0:
            raise ValueError(f"Token safety margin cannot be negative: {cls.TOKEN_SAFETY_MARGIN_SECONDS}")

        try:
            re.compile(cls.PRERELEASE_PATTERN)
        except re.error as e:
            raise ValueError(f"Invalid pre-release pattern {cls.PRERELEASE_PATTERN!r}: {e}")

        return True
