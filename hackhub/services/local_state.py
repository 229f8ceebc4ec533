# services/local_state.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Self

from hackhub.config import Settings

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "hackhub-user"


class LocalStateStore:
	"""Small JSON key/value file for client-side state that survives restarts."""
	_instance: ClassVar[Optional["LocalStateStore"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._path = Path(Settings().local_state_path)
		self._store: Dict[str, Any] = dict()
		self._load()
		self._initialized = True

	def _load(self) -> None:
		if not self._path.exists():
			return
		try:
			data = json.loads(self._path.read_text(encoding="utf-8"))
		except (OSError, ValueError) as exc:
			logger.warning("Ignoring unreadable local state %s: %s", self._path, exc)
			return
		if isinstance(data, dict):
			self._store.update(data)

	def _save(self) -> None:
		self._path.parent.mkdir(parents=True, exist_ok=True)
		self._path.write_text(json.dumps(self._store, ensure_ascii=False, indent=2), encoding="utf-8")

	def get(self, key: str, default: Any = None) -> Any:
		return self._store.get(key, default)

	def set(self, key: str, value: Any) -> None:
		self._store[key] = value
		self._save()

	def remove(self, key: str) -> None:
		if self._store.pop(key, None) is not None:
			self._save()
