# sahar/storage.py
from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from .paths import UPLOADS_DIR

log = logging.getLogger("sahar.storage")

BUCKETS = ("menu_images", "receipts")
ALLOWED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp"}
SAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(name: str) -> str:
    name = os.path.basename(name or "")
    name = SAFE_RE.sub("_", name)
    return name[:120]


class FileStore:
    """Bucketed object store on the local uploads folder, served under /uploads."""

    def __init__(self, root: Path = UPLOADS_DIR, url_prefix: str = "/uploads") -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def _bucket_dir(self, bucket: str) -> Path:
        if bucket not in BUCKETS:
            raise ValueError(f"unknown bucket {bucket!r}")
        d = self.root / bucket
        d.mkdir(parents=True, exist_ok=True)
        return d

    def upload(self, bucket: str, filename: str, data: bytes) -> str:
        name = safe_filename(filename)
        if not name:
            raise ValueError("empty filename")
        dest = self._bucket_dir(bucket) / name
        dest.write_bytes(data)
        log.info("stored %s/%s (%d bytes)", bucket, name, len(data))
        return name

    def public_url(self, bucket: str, name: str) -> str:
        return f"{self.url_prefix}/{bucket}/{name}"

    def remove(self, bucket: str, name: str) -> bool:
        p = self._bucket_dir(bucket) / safe_filename(name)
        try:
            p.unlink()
            return True
        except FileNotFoundError:
            return False


store = FileStore()
