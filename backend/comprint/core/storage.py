# comprint/core/storage.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from starlette.concurrency import run_in_threadpool

from comprint.core.config import settings


ATTACHMENTS_BUCKET = "service-attachments"


class LocalStorage:
    """
    Bucket-style blob store on the local filesystem:
      <root>/<bucket>/<path>  served at  <public_url>/<bucket>/<path>
    """

    def __init__(self, root: str | os.PathLike, public_url: str):
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        target = (self.root / bucket / path).resolve()
        bucket_root = (self.root / bucket).resolve()
        if bucket_root not in target.parents:
            raise ValueError(f"path escapes bucket: {path!r}")
        return target

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        # "x": never overwrite an existing blob
        with open(target, "xb") as fh:
            fh.write(data)

    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        target = self._resolve(bucket, path)
        await run_in_threadpool(self._write, target, data)
        return path

    async def remove(self, bucket: str, path: str) -> bool:
        target = self._resolve(bucket, path)
        try:
            await run_in_threadpool(target.unlink)
        except FileNotFoundError:
            return False
        return True

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_url}/{bucket}/{path}"

    def path_from_public_url(self, bucket: str, url: Optional[str]) -> Optional[str]:
        """Inverse of get_public_url; None when the url is not in this bucket."""
        if not url:
            return None
        parts = url.split("/")
        if bucket not in parts:
            return None
        idx = parts.index(bucket)
        tail = parts[idx + 1:]
        return "/".join(tail) if tail else None


def get_storage() -> LocalStorage:
    """FastAPI dependency; overridden in tests."""
    return LocalStorage(settings.STORAGE_ROOT, settings.STORAGE_PUBLIC_URL)
