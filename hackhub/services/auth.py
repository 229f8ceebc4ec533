# services/auth.py
from __future__ import annotations

import asyncio
import inspect
import logging
import re
import secrets
from typing import Awaitable, Callable, ClassVar, Dict, List, Optional, Self

import bcrypt
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError

from hackhub.config import Settings
from hackhub.db.database import DataBase, is_unique_violation
from hackhub.db.enums import AuthEvent, AuthProvider
from hackhub.db.schemas.session import AuthSession, Identity
from hackhub.db.schemas.user import UserCreate, UserRead
from hackhub.errors import AuthError, AuthRequired
from hackhub.services.audit_log import audit_logger
from hackhub.services.local_state import CURRENT_USER_KEY, LocalStateStore

logger = logging.getLogger(__name__)

AuthListener = Callable[[AuthEvent, Optional[Identity]], Awaitable[None] | None]

OAUTH_PROVIDERS = (AuthProvider.GOOGLE, AuthProvider.GITHUB)
SIGN_UP_MIN_PASSWORD = 8
SIGN_IN_MIN_PASSWORD = 6
# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72

_email_adapter = TypeAdapter(EmailStr)
_password_classes = re.compile(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def require_identity(session: AuthSession | None, operation: str | None = None) -> Identity:
	"""Identity of ``session``; AuthRequired when nobody is signed in."""
	if session is None:
		raise AuthRequired(operation)
	return session.identity


def _normalize_email(email: str) -> str:
	try:
		return str(_email_adapter.validate_python((email or "").strip())).lower()
	except ValidationError as exc:
		raise AuthError("Invalid email address") from exc


def _check_password_bytes(password: str) -> bytes:
	raw = password.encode("utf-8")
	if len(raw) > BCRYPT_MAX_BYTES:
		raise AuthError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
	return raw


class AuthService:
	"""
	Session/identity provider.

	Keeps the process-wide "current session" the way a browser auth client does,
	but every domain service receives the session explicitly.
	"""
	_instance: ClassVar[Optional["AuthService"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._database = DataBase()
		self._rounds = Settings().bcrypt_rounds
		self._sessions: Dict[str, AuthSession] = dict()  # Dict[access_token, session]
		self._current: Optional[AuthSession] = None
		self._listeners: List[AuthListener] = []

		self._initialized = True

	# -----------------
	# Session lifecycle
	# -----------------
	def get_current_session(self) -> Optional[AuthSession]:
		return self._current

	def get_session(self, access_token: str) -> Optional[AuthSession]:
		return self._sessions.get(access_token)

	def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
		"""Subscribe to sign-in / sign-out events; returns the unsubscribe function."""
		self._listeners.append(callback)

		def unsubscribe() -> None:
			if callback in self._listeners:
				self._listeners.remove(callback)

		return unsubscribe

	async def _notify(self, event: AuthEvent, identity: Optional[Identity]) -> None:
		for listener in list(self._listeners):
			try:
				result = listener(event, identity)
				if inspect.isawaitable(result):
					await result
			except Exception:
				# one broken subscriber must not abort the sign-in of the others
				logger.exception("Auth listener %r failed on %s", listener, event)

	async def _open_session(self, user: UserRead) -> AuthSession:
		identity = Identity.from_user(user)
		session = AuthSession(access_token=secrets.token_urlsafe(32), identity=identity)
		self._sessions[session.access_token] = session
		self._current = session
		LocalStateStore().set(CURRENT_USER_KEY, {"id": str(identity.id), "email": identity.email})
		logger.info("Signed in user=%s provider=%s", identity.id, identity.provider)
		await audit_logger().log_user_action(action="auth.sign_in", actor=identity)
		await self._notify(AuthEvent.SIGNED_IN, identity)
		return session

	# -----------------
	# Sign up / sign in
	# -----------------
	async def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> AuthSession:
		email = _normalize_email(email)
		if not password or len(password) < SIGN_UP_MIN_PASSWORD:
			raise AuthError(f"Password must be at least {SIGN_UP_MIN_PASSWORD} characters")
		if not _password_classes.search(password):
			raise AuthError("Password must include uppercase, lowercase, and number")
		raw = _check_password_bytes(password)

		hashed = await asyncio.to_thread(bcrypt.hashpw, raw, bcrypt.gensalt(self._rounds))
		payload = UserCreate(
			email=email,
			password_hash=hashed.decode("utf-8"),
			provider=AuthProvider.EMAIL,
			full_name=(full_name or "").strip() or None,
		)
		try:
			user = await self._database.create_user(payload)
		except IntegrityError as exc:
			if is_unique_violation(exc):
				raise AuthError("User already registered") from exc
			raise

		return await self._open_session(user)

	async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
		email = _normalize_email(email)
		if not password:
			raise AuthError("Password is required")
		if len(password) < SIGN_IN_MIN_PASSWORD:
			raise AuthError(f"Password must be at least {SIGN_IN_MIN_PASSWORD} characters")
		raw = _check_password_bytes(password)

		creds = await self._database.get_credentials_by_email(email)
		if creds is None or not creds.password_hash:
			raise AuthError("Invalid login credentials")
		ok = await asyncio.to_thread(bcrypt.checkpw, raw, creds.password_hash.encode("utf-8"))
		if not ok:
			raise AuthError("Invalid login credentials")

		return await self._open_session(UserRead.model_validate(creds.model_dump(exclude={"password_hash"})))

	async def sign_in_with_oauth(
		self,
		provider: AuthProvider | str,
		email: str,
		full_name: Optional[str] = None,
		avatar_url: Optional[str] = None,
	) -> AuthSession:
		"""
		Complete an OAuth sign-in with an identity already verified by ``provider``.

		The account is created on first sign-in. An email that already belongs to an
		account of another provider is refused instead of being linked silently.
		"""
		try:
			provider = AuthProvider(provider)
		except ValueError as exc:
			raise AuthError(f"Unsupported provider: {provider}") from exc
		if provider not in OAUTH_PROVIDERS:
			raise AuthError(f"Unsupported provider: {provider}")
		email = _normalize_email(email)

		creds = await self._database.get_credentials_by_email(email)
		if creds is not None and creds.provider != provider:
			raise AuthError(
				"An account already exists with this email using another provider. "
				f"Please sign in with {creds.provider.value}."
			)

		if creds is None:
			try:
				user = await self._database.create_user(
					UserCreate(email=email, provider=provider, full_name=full_name, avatar_url=avatar_url)
				)
			except IntegrityError as exc:
				if is_unique_violation(exc):
					raise AuthError("User already registered") from exc
				raise
		else:
			user = await self._database.update_user_metadata(creds.id, full_name=full_name, avatar_url=avatar_url)
			if user is None:
				raise AuthError("Invalid login credentials")

		return await self._open_session(user)

	async def sign_out(self, session: Optional[AuthSession] = None) -> None:
		session = session or self._current
		if session is None:
			return

		self._sessions.pop(session.access_token, None)
		if self._current is not None and self._current.access_token == session.access_token:
			self._current = None

		try:
			LocalStateStore().remove(CURRENT_USER_KEY)
		except OSError as exc:
			logger.warning("Could not clear local user state: %s", exc)

		logger.info("Signed out user=%s", session.identity.id)
		await audit_logger().log_user_action(action="auth.sign_out", actor=session)
		await self._notify(AuthEvent.SIGNED_OUT, None)

	async def refresh_identity(self, session: AuthSession) -> AuthSession:
		"""Reload identity metadata (e.g. after a profile change) into a new session object."""
		user = await self._database.get_user_by_id(session.identity.id)
		if user is None:
			raise AuthRequired()
		refreshed = session.model_copy(update={"identity": Identity.from_user(user)})
		self._sessions[refreshed.access_token] = refreshed
		if self._current is not None and self._current.access_token == refreshed.access_token:
			self._current = refreshed
		await self._notify(AuthEvent.USER_UPDATED, refreshed.identity)
		return refreshed
