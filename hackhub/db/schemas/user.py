# db/schemas/user.py
import uuid
from datetime import datetime
from typing import Optional
from pydantic import EmailStr
from hackhub.db.schemas._base import OrmModel
from hackhub.db.enums import AuthProvider

class UserBase(OrmModel):
    email: EmailStr
    provider: AuthProvider = AuthProvider.EMAIL
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

class UserCreate(UserBase):
    password_hash: Optional[str] = None

class UserRead(UserBase):
    id: uuid.UUID
    created_at: datetime

class UserCredentials(UserRead):
    """Identity row including the stored hash; never leaves the auth service."""
    password_hash: Optional[str] = None
