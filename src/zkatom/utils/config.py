"""
Configuration manager untuk zkatom.
File ini membaca environment variables dan menyediakan
konfigurasi default untuk coordination client, atom dan server.
"""

import os
from typing import Optional
from dotenv import load_dotenv

from ..retry import RetryPolicy

# Load environment variables dari .env file
load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, '')
    return int(value) if value else None


class Config:
    """Class untuk manage semua konfigurasi sistem"""

    # Coordination service
    COORDINATION_URL: str = os.getenv('COORDINATION_URL', 'redis://localhost:6379/0')
    REDIS_KEY_PREFIX: str = os.getenv('REDIS_KEY_PREFIX', 'zkatom')

    # Atom
    ATOM_PATH: str = os.getenv('ATOM_PATH', '/zkatom/default')

    # Retry backoff (dalam milliseconds)
    RETRY_BASE_DELAY_MS: int = int(os.getenv('RETRY_BASE_DELAY_MS', 5))
    RETRY_MAX_DELAY_MS: int = int(os.getenv('RETRY_MAX_DELAY_MS', 500))
    RETRY_MAX_ATTEMPTS: Optional[int] = _optional_int('RETRY_MAX_ATTEMPTS')

    # HTTP status server
    NODE_HOST: str = os.getenv('NODE_HOST', 'localhost')
    NODE_PORT: int = int(os.getenv('NODE_PORT', 5000))

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE: str = os.getenv('LOG_FILE', '')

    @classmethod
    def retry_policy(cls) -> RetryPolicy:
        """Build RetryPolicy dari konfigurasi"""
        return RetryPolicy(
            base_delay=cls.RETRY_BASE_DELAY_MS / 1000.0,
            max_delay=cls.RETRY_MAX_DELAY_MS / 1000.0,
            max_attempts=cls.RETRY_MAX_ATTEMPTS
        )

    @classmethod
    def client_options(cls) -> dict:
        """Extra kwargs untuk connect() sesuai backend"""
        if cls.COORDINATION_URL.startswith('memory://'):
            return {}
        return {'key_prefix': cls.REDIS_KEY_PREFIX}

    @classmethod
    def display(cls):
        """Print semua konfigurasi untuk debugging"""
        print("=== Configuration ===")
        print(f"Coordination: {cls.COORDINATION_URL}")
        print(f"Atom path: {cls.ATOM_PATH}")
        print(f"Retry: base={cls.RETRY_BASE_DELAY_MS}ms max={cls.RETRY_MAX_DELAY_MS}ms "
              f"attempts={cls.RETRY_MAX_ATTEMPTS or 'unbounded'}")
        print(f"Node Address: {cls.NODE_HOST}:{cls.NODE_PORT}")
        print("=" * 30)


# Test configuration saat file dijalankan langsung
if __name__ == "__main__":
    Config.display()
