"""Domain Entities - Auth"""
from pydantic import BaseModel
from typing import Optional


class User(BaseModel):
    """Back-office operator; the username doubles as the actor id on every write"""
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    disabled: bool = False

    class Config:
        from_attributes = True

    @property
    def actor_id(self) -> str:
        return self.username


class UserInDB(User):
    hashed_password: str
