"""API Dependencies - Operator authentication"""
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from domain.auth import User, UserInDB
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Demo staff accounts keyed by username; the username is the actor id stamped on ledger writes.
# Passwords are plain here and bcrypt-hashed the first time an account is looked up.
operator_directory: Dict[str, dict] = {
    "admin": {
        "username": "admin",
        "full_name": "Lodge Manager",
        "email": "manager@lodge.example",
        "password": "admin123",
        "disabled": False,
    },
    "frontdesk": {
        "username": "frontdesk",
        "full_name": "Front Desk (off shift)",
        "email": "frontdesk@lodge.example",
        "password": "frontdesk123",
        "disabled": True,
    },
}

_hashed_passwords: Dict[str, str] = {}


def _hashed_password_for(directory: Dict[str, dict], username: str) -> str:
    if username not in _hashed_passwords:
        _hashed_passwords[username] = get_password_hash(directory[username]["password"])
    return _hashed_passwords[username]


def get_operator(directory: Dict[str, dict], username: str) -> Optional[UserInDB]:
    """Look an operator up by username; None when the account does not exist"""
    account = directory.get(username)
    if account is None:
        return None
    fields = {key: value for key, value in account.items() if key != "password"}
    return UserInDB(**fields, hashed_password=_hashed_password_for(directory, username))


async def get_current_operator(token: str = Depends(oauth2_scheme)) -> UserInDB:
    rejected = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = TokenData(username=decode_access_token(token).get("sub"))
    except (JWTError, ValueError):
        raise rejected
    if claims.username is None:
        raise rejected

    operator = get_operator(operator_directory, claims.username)
    if operator is None:
        raise rejected
    return operator


async def get_current_active_operator(operator: User = Depends(get_current_operator)) -> User:
    """Operators whose account is disabled may not touch reservations or the ledger"""
    if operator.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return operator
