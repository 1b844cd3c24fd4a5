"""
Dependency injection for FastAPI endpoints.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from app.core.agents.runner.generation import GenerationClient, LangChainGenerationClient
from app.core.config import settings

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Get the current learner id from the bearer JWT.

    Tokens are issued by the identity service; the learner id is the ``sub``
    claim and is used as-is to scope every plan lookup.

    Raises:
        HTTPException: If the token is missing or invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        raise credentials_exception

    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise credentials_exception
    return str(user_id)


def get_generation_client() -> Optional[GenerationClient]:
    """
    Model collaborator for generators; None (template fallbacks only) when no
    OpenAI key is configured.
    """
    if not settings.OPENAI_API_KEY:
        return None
    return LangChainGenerationClient()
