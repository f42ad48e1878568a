"""
Module d'authentification par token.

L'émission des tokens relève d'un collaborateur externe; ce module fournit la
création (dev/tests) et la validation des tokens JWT porteurs (`sub` = id
utilisateur).
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError
from pydantic import BaseModel, ValidationError


class TokenData(BaseModel):
    """Données contenues dans un token JWT."""

    sub: str


def create_access_token(
    secret: str, alg: str, expires_min: int, payload: dict[str, Any]
) -> str:
    """Crée un token JWT d'accès avec expiration."""
    to_encode = payload.copy()
    expire = datetime.now(UTC) + timedelta(minutes=expires_min)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=alg)


def decode_token(token: str, secret: str, alg: str) -> TokenData | None:
    """Décode et valide un token JWT."""
    try:
        data = jwt.decode(token, secret, algorithms=[alg])
        return TokenData(**data)
    except (InvalidTokenError, ValidationError):
        return None
