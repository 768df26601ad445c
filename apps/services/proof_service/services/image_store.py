"""
Image artifact storage: uploads/<measurement_id>.jpg, served back verbatim.
"""

import logging
import uuid
from pathlib import Path

from libs.core.exceptions import ArtifactStorageError

logger = logging.getLogger(__name__)


class ImageStore:
    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def path_for(self, measurement_id: str) -> Path:
        """
        Path of the image for an identity.

        Raises:
            ValueError: identity is not a UUID (keeps lookups inside base_dir)
        """
        uuid.UUID(measurement_id)
        return self.base_dir / f"{measurement_id}.jpg"

    def exists(self, measurement_id: str) -> bool:
        try:
            return self.path_for(measurement_id).is_file()
        except ValueError:
            return False

    def save(self, measurement_id: str, data: bytes) -> Path:
        path = self.path_for(measurement_id)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ArtifactStorageError(f"Failed to save image: {e}", {"path": str(path)}) from e
        logger.debug(f"[ImageStore] Saved {len(data)} bytes to {path}")
        return path

    def read(self, measurement_id: str) -> bytes:
        return self.path_for(measurement_id).read_bytes()
