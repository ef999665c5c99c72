"""
Receipt attachment store backed by a local directory.

Uploading is a blocking step that finishes before any ledger mutation that
references the receipt: clients upload first, receive a receipt_ref, then
pass that ref to create/update/pay. Mutations reject refs that were never
stored. A failed mutation can leave an unreferenced file behind; it is never
the other way round.
"""

import logging
import mimetypes
import os
import re
import tempfile
from pathlib import Path
from uuid import uuid4

from core.exceptions import DependencyError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_REF_PATTERN = re.compile(r"^[0-9a-f]{32}\.[a-z0-9]{1,8}$")

# mimetypes.guess_extension is platform dependent for these
_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


class ReceiptStore:
    """
    Stores receipt files under a root directory.

    Usage:
        store = ReceiptStore("/var/lib/ledger/receipts", max_bytes=10_485_760,
                             allowed_types=["image/png", "application/pdf"])
        ref = store.store(data, "image/png")
        data = store.retrieve(ref)
    """

    def __init__(self, root: str, max_bytes: int, allowed_types: list[str]):
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.allowed_types = set(allowed_types)

    def store(self, data: bytes, content_type: str) -> str:
        """
        Save a receipt.

        Returns:
            receipt_ref to attach to a deposit or payment

        Raises:
            ValidationError: Empty, too large, or unsupported type
            DependencyError: The file could not be written
        """
        if not data:
            raise ValidationError("Receipt file is empty", field="receipt")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"Receipt exceeds {self.max_bytes} bytes", field="receipt"
            )
        if content_type not in self.allowed_types:
            raise ValidationError(
                f"Unsupported receipt type '{content_type}'", field="receipt"
            )

        extension = _EXTENSIONS.get(content_type) or mimetypes.guess_extension(content_type) or ".bin"
        ref = f"{uuid4().hex}{extension}"

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_path, self.root / ref)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("Receipt write failed: %s", e)
            raise DependencyError("Receipt storage unavailable") from e

        logger.info("Stored receipt %s (%d bytes)", ref, len(data))
        return ref

    def retrieve(self, ref: str) -> bytes:
        """
        Read a stored receipt.

        Raises:
            NotFoundError: Unknown or malformed ref
            DependencyError: The file exists but could not be read
        """
        path = self._path_for(ref)
        if path is None or not path.is_file():
            raise NotFoundError("receipt", ref)

        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("Receipt read failed for %s: %s", ref, e)
            raise DependencyError("Receipt storage unavailable") from e

    def exists(self, ref: str) -> bool:
        """Whether ref names a stored receipt."""
        path = self._path_for(ref)
        return path is not None and path.is_file()

    def require(self, ref: str | None) -> None:
        """
        Check a receipt_ref supplied with a ledger mutation.

        Raises:
            ValidationError: If ref is set but was never stored
        """
        if ref is not None and not self.exists(ref):
            raise ValidationError(f"Receipt {ref} has not been uploaded", field="receipt_ref")

    @staticmethod
    def content_type(ref: str) -> str:
        """Media type for a stored ref, from its extension."""
        guessed, _ = mimetypes.guess_type(ref)
        return guessed or "application/octet-stream"

    def _path_for(self, ref: str) -> Path | None:
        # Refs are generated here; anything else could be a path traversal
        if not isinstance(ref, str) or not _REF_PATTERN.match(ref):
            return None
        return self.root / ref
