# services/storage.py
from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import ClassVar, Optional, Self

from hackhub.config import Settings
from hackhub.errors import StorageError

logger = logging.getLogger(__name__)

AVATARS_BUCKET = "avatars"
HACKATHON_IMAGES_BUCKET = "hackathon-images"


class ObjectStorage:
	"""
	Filesystem-backed object storage: ``<storage_root>/<bucket>/<path>``.

	Objects are addressed by bucket + relative POSIX path and exposed under
	``<storage_public_url>/<bucket>/<path>``.
	"""
	_instance: ClassVar[Optional["ObjectStorage"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		settings = Settings()
		self._root = Path(settings.storage_root).resolve()
		self._public_url = settings.storage_public_url
		self._initialized = True

	@property
	def root(self) -> Path:
		return self._root

	def _resolve(self, bucket: str, path: str) -> Path:
		key = PurePosixPath(path)
		if not bucket or "/" in bucket or bucket in (".", ".."):
			raise StorageError(f"Invalid bucket name: {bucket!r}")
		if key.is_absolute() or not key.parts or ".." in key.parts:
			raise StorageError(f"Invalid object path: {path!r}")
		return self._root / bucket / Path(*key.parts)

	async def upload(self, bucket: str, path: str, data: bytes, *, upsert: bool = False) -> str:
		"""
		Store ``data`` at ``bucket/path`` and return the object key.

		Raises:
			StorageError: when the object exists and ``upsert`` is False, or the write fails.
		"""
		target = self._resolve(bucket, path)
		if target.exists() and not upsert:
			raise StorageError(f"Object already exists: {bucket}/{path}")

		def _write() -> None:
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_bytes(data)

		try:
			await asyncio.to_thread(_write)
		except OSError as exc:
			logger.error("Upload to %s/%s failed: %s", bucket, path, exc)
			raise StorageError(f"Upload failed: {bucket}/{path}") from exc

		logger.info("Stored object %s/%s (%d bytes)", bucket, path, len(data))
		return path

	async def download(self, bucket: str, path: str) -> bytes:
		target = self._resolve(bucket, path)
		try:
			return await asyncio.to_thread(target.read_bytes)
		except FileNotFoundError as exc:
			raise StorageError(f"Object not found: {bucket}/{path}") from exc

	def get_public_url(self, bucket: str, path: str) -> str:
		self._resolve(bucket, path)
		return f"{self._public_url}/{bucket}/{path}"


def object_key(name: str, filename: str) -> str:
	"""``<name>.<ext>`` using the extension of the uploaded file name."""
	ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
	if not ext or "/" in ext:
		raise StorageError(f"Cannot determine file extension of {filename!r}")
	return f"{name}.{ext}"
