# services/audit_log.py
from __future__ import annotations

import inspect
import logging
import uuid
from contextvars import ContextVar, Token
from datetime import date, datetime
from enum import Enum
from functools import wraps
from typing import Any, ClassVar, Iterable, Mapping, Optional, Sequence

from hackhub.config import Settings
from hackhub.db.database import DataBase
from hackhub.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from hackhub.db.schemas.session import AuthSession, Identity

Actor = AuthSession | Identity | uuid.UUID

_actor_ctx: ContextVar[Optional[uuid.UUID]] = ContextVar("hackhub_audit_actor", default=None)


class AuditLogService:
    """
    Writes one ``audit_log`` row per mutating call: who (``actor_id``), what
    (``action``, e.g. ``services.team.delete_team``) and a JSON payload with the
    call arguments and either the result or the error.

    Access tokens never reach the table: an ``AuthSession`` is stored as its user id.
    """

    _instance: ClassVar[Optional["AuditLogService"]] = None

    def __new__(cls) -> "AuditLogService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._database = DataBase()
        self._enabled = Settings().audit_log_enabled
        self._logger = logging.getLogger("hackhub.audit")
        self._initialized = True

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    async def log(
        self,
        *,
        action: str,
        actor_id: uuid.UUID | None = None,
        payload: Any | None = None,
    ) -> AuditLogRead | None:
        """Store an entry; returns None when auditing is switched off."""
        actor_id = actor_id if actor_id is not None else self.current_actor()
        if not self._enabled:
            self._logger.debug("AUDIT (disabled) action=%s actor=%s", action, actor_id or "-")
            return None

        serialized = self.serialize(payload) if payload is not None else {}
        if not isinstance(serialized, dict):
            serialized = {"value": serialized}

        entry = await self._database.create_audit_log(
            AuditLogCreate(action=action, actor_id=actor_id, payload=serialized)
        )
        self._logger.info("AUDIT action=%s actor=%s entry=%s", action, actor_id or "-", entry.id)
        return entry

    async def log_user_action(
        self,
        *,
        action: str,
        actor: Actor | None,
        payload: Any | None = None,
    ) -> AuditLogRead | None:
        """Entry for something a signed-in user did; the identity is copied into the payload."""
        body: dict[str, Any] = {}
        if payload is not None:
            body["data"] = payload
        identity = actor.identity if isinstance(actor, AuthSession) else actor
        if isinstance(identity, Identity):
            body["actor"] = {
                "id": str(identity.id),
                "email": identity.email,
                "provider": identity.provider.value,
            }
        return await self.log(action=action, actor_id=self.actor_id(actor), payload=body)

    async def list_entries(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        actor_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> tuple[list[AuditLogRead], int]:
        return await self._database.list_audit_logs(limit=limit, offset=offset, actor_id=actor_id, action=action)

    # actor of the running task, for calls that carry no session
    def bind_actor(self, actor_id: Optional[uuid.UUID]) -> Token:
        return _actor_ctx.set(actor_id)

    def unbind_actor(self, token: Token) -> None:
        _actor_ctx.reset(token)

    def current_actor(self) -> Optional[uuid.UUID]:
        return _actor_ctx.get()

    @staticmethod
    def actor_id(actor: Actor | None) -> uuid.UUID | None:
        if isinstance(actor, AuthSession):
            return actor.user_id
        if isinstance(actor, Identity):
            return actor.id
        if isinstance(actor, uuid.UUID):
            return actor
        return None

    def serialize(self, value: Any) -> Any:
        """JSON-friendly copy of ``value``."""
        if isinstance(value, AuthSession):
            return {"user_id": str(value.user_id)}
        if isinstance(value, Enum):
            return value.value
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (bytes, bytearray)):
            # uploads: keep the size only
            return f"<{len(value)} bytes>"
        if isinstance(value, Mapping):
            return {str(k): self.serialize(v) for k, v in value.items()}
        if isinstance(value, Sequence):
            return [self.serialize(v) for v in value]
        if hasattr(value, "model_dump"):
            return self.serialize(value.model_dump())
        return str(value)


def audit_logger() -> AuditLogService:
    return AuditLogService()


async def _record(action: str, actor: Actor | None, payload: dict[str, Any]) -> None:
    """
    Write the entry for an instrumented call. A failed audit write is logged
    and dropped: the caller always sees the service's own result or error.
    """
    audit = audit_logger()
    try:
        if actor is None and audit.current_actor() is None:
            await audit.log(action=action, payload=payload)
        else:
            await audit.log_user_action(action=action, actor=actor or audit.current_actor(), payload=payload)
    except Exception:
        audit.logger.exception("Audit write failed for %s", action)


def _audited(fn, action: str, actor_fields: Sequence[str]):
    if getattr(fn, "__audit_wrapped__", False):
        return fn

    signature = inspect.signature(fn)

    @wraps(fn)
    async def wrapper(self, *args, **kwargs):
        audit = audit_logger()
        bound = signature.bind_partial(self, *args, **kwargs)
        actor = next(
            (bound.arguments[f] for f in actor_fields if bound.arguments.get(f) is not None),
            None,
        )
        payload: dict[str, Any] = {
            "args": [audit.serialize(a) for a in args],
            "kwargs": {k: audit.serialize(v) for k, v in kwargs.items()},
        }
        try:
            result = await fn(self, *args, **kwargs)
        except Exception as exc:
            payload["error"] = repr(exc)
            await _record(f"{action}.error", actor, payload)
            raise
        payload["result"] = audit.serialize(result)
        await _record(action, actor, payload)
        return result

    wrapper.__audit_wrapped__ = True  # type: ignore[attr-defined]
    return wrapper


def instrument_service_class(
    cls,
    *,
    prefix: str | None = None,
    exclude: Iterable[str] | None = None,
    actor_fields: Sequence[str] = ("session", "actor"),
) -> None:
    """Audit every public coroutine method of ``cls`` not listed in ``exclude``."""
    action_prefix = prefix or cls.__name__
    excluded = set(exclude or ())

    for name, attr in list(cls.__dict__.items()):
        if name.startswith("_") or name in excluded or not inspect.iscoroutinefunction(attr):
            continue
        setattr(cls, name, _audited(attr, f"{action_prefix}.{name}", actor_fields))


__all__ = [
    "AuditLogService",
    "audit_logger",
    "instrument_service_class",
]
