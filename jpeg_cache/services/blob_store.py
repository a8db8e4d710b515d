import enum
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

import config
from logger_config import get_logger

logger = get_logger("blob_store")

# Exactly three ASCII digits; \d would also accept other Unicode digits
KEY_PATTERN = re.compile(r"[0-9]{3}")


class StoreStatus(enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a single storage operation.

    ``data`` is only set for successful reads, ``detail`` only for I/O errors.
    The detail may contain filesystem paths and is meant for logs, not clients.
    """
    status: StoreStatus
    data: Optional[bytes] = None
    detail: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[bytes] = None) -> 'StoreResult':
        return cls(StoreStatus.OK, data=data)

    @classmethod
    def not_found(cls) -> 'StoreResult':
        return cls(StoreStatus.NOT_FOUND)

    @classmethod
    def io_error(cls, exc: OSError) -> 'StoreResult':
        return cls(StoreStatus.IO_ERROR, detail=str(exc))


class BlobStore:
    """Flat directory of ``<key>.jpeg`` files.

    Every method is a single whole-file operation; no handles or contents
    are kept between calls.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir

    async def initialize(self):
        """Create the cache directory and drop temp files left by a crashed writer."""
        logger.info(f"Initializing blob store in {self.cache_dir}")
        await aiofiles.os.makedirs(self.cache_dir, exist_ok=True)

        files_removed = 0
        for file in self.cache_dir.glob(f".*{config.TEMP_SUFFIX}"):
            if file.is_file():
                await aiofiles.os.unlink(file)
                files_removed += 1
        logger.info(f"Cleaned cache directory, removed {files_removed} stale temporary files")

    def location(self, key: str) -> Path:
        """Get the path where the blob for ``key`` is stored."""
        if not KEY_PATTERN.fullmatch(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.cache_dir / f"{key}{config.BLOB_SUFFIX}"

    async def read(self, key: str) -> StoreResult:
        path = self.location(key)
        try:
            async with aiofiles.open(path, 'rb') as f:
                data = await f.read()
        except FileNotFoundError:
            return StoreResult.not_found()
        except OSError as e:
            return StoreResult.io_error(e)
        logger.debug(f"Read {len(data)} bytes from {path.name}")
        return StoreResult.ok(data)

    async def write(self, key: str, data: bytes) -> StoreResult:
        """Replace the blob for ``key`` with ``data``.

        The bytes go to a hidden temp file next to the target which is then
        renamed over it, so readers see either the old or the new blob.
        """
        path = self.location(key)
        temp_path = self.cache_dir / f".{path.name}.{uuid.uuid4().hex}{config.TEMP_SUFFIX}"
        try:
            async with aiofiles.open(temp_path, 'wb') as f:
                await f.write(data)
            await aiofiles.os.replace(temp_path, path)
        except OSError as e:
            await self._discard(temp_path)
            return StoreResult.io_error(e)
        logger.debug(f"Wrote {len(data)} bytes to {path.name}")
        return StoreResult.ok()

    async def delete(self, key: str) -> StoreResult:
        path = self.location(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return StoreResult.not_found()
        except OSError as e:
            return StoreResult.io_error(e)
        return StoreResult.ok()

    async def _discard(self, temp_path: Path):
        try:
            await aiofiles.os.unlink(temp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary file {temp_path.name}: {e}")
