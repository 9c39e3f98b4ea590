import logging
from pathlib import Path
from typing import Optional

from catalog.config import get_settings
from catalog.exceptions import ConflictError, InvalidTypeError

settings = get_settings()
logger = logging.getLogger(__name__)

SUB_PATHS = ("icons", "images")


class StorageService:
    """
    File storage for product assets.

    Files live under ``<STORAGE_DIR>/<APP_ENV>/<sub_path>`` where
    ``sub_path`` is either ``icons`` or ``images``.
    """

    def __init__(self, base_dir: Optional[str] = None, env: Optional[str] = None):
        self.root = Path(base_dir or settings.STORAGE_DIR) / (env or settings.APP_ENV)

    def _resource_dir(self, sub_path: str) -> Path:
        if sub_path not in SUB_PATHS:
            raise InvalidTypeError(f"Invalid resource type: {sub_path}")
        return self.root / sub_path

    def prepare_directories(self) -> None:
        """Create the storage directories if they are missing."""
        for sub_path in SUB_PATHS:
            self._resource_dir(sub_path).mkdir(parents=True, exist_ok=True)

    def check_if_asset_exists(self, sub_path: str, name: str) -> bool:
        return (self._resource_dir(sub_path) / name).exists()

    def create_resource(self, sub_path: str, name: str, content: bytes) -> None:
        """
        Write a new resource file.

        Raises:
            InvalidTypeError: If sub_path is unknown
            ConflictError: If a file with that name already exists
        """
        directory = self._resource_dir(sub_path)
        directory.mkdir(parents=True, exist_ok=True)

        path = directory / name
        if path.exists():
            raise ConflictError(f"Resource already exists: {name}")

        path.write_bytes(content)
        logger.debug(f"Stored {sub_path} resource {name} ({len(content)} bytes)")

    def get_resource(self, sub_path: str, name: str) -> Optional[bytes]:
        """Read a resource file, None if it does not exist."""
        path = self._resource_dir(sub_path) / name
        if not path.is_file():
            return None
        return path.read_bytes()

    def delete_resource(self, sub_path: str, name: str) -> None:
        """Delete a resource file. Missing files are ignored."""
        path = self._resource_dir(sub_path) / name
        if path.exists():
            path.unlink()

    def list_resources(self, sub_path: str) -> list[str]:
        directory = self._resource_dir(sub_path)
        if not directory.is_dir():
            return []
        return sorted(entry.name for entry in directory.iterdir() if entry.is_file())
