"""Configuration settings for the JPEG cache server."""
import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

# Network defaults
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8080

# Request limits
MAX_BODY_SIZE = 10 * 1024 * 1024  # 10MB

# Storage layout
BLOB_SUFFIX = ".jpeg"
TEMP_SUFFIX = ".tmp"
CONTENT_TYPE = "image/jpeg"

# Directory paths
LOG_DIR = "./logs"


def _port(value: str) -> int:
    port = int(value)
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError(f"port must be between 1 and 65535, got {port}")
    return port


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {number}")
    return number


@dataclass(frozen=True)
class CacheConfig:
    cache_dir: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_body_size: int = MAX_BODY_SIZE
    log_dir: Path = Path(LOG_DIR)

    @classmethod
    def from_args(cls, argv: Optional[Sequence[str]] = None) -> 'CacheConfig':
        """Create CacheConfig from command line arguments."""
        # -h belongs to --host, so help is only reachable as --help
        parser = argparse.ArgumentParser(description='HTTP cache for JPEG images', add_help=False)
        parser.add_argument('--help', action='help', help='Show this help message and exit')
        parser.add_argument('-h', '--host', default=DEFAULT_HOST,
                            help='Server address')
        parser.add_argument('-p', '--port', type=_port, default=DEFAULT_PORT,
                            help='Server port')
        parser.add_argument('-c', '--cache', required=True,
                            help='Cache directory path')
        parser.add_argument('--max-body-size', type=_positive_int, default=MAX_BODY_SIZE,
                            help='Largest accepted upload in bytes')
        parser.add_argument('--log-dir', default=LOG_DIR,
                            help='Directory for the log file')
        args = parser.parse_args(argv)

        return cls(
            cache_dir=Path(args.cache).resolve(),
            host=args.host,
            port=args.port,
            max_body_size=args.max_body_size,
            log_dir=Path(args.log_dir),
        )
