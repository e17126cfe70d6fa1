import logging
from typing import Optional, Protocol

from fastapi import Depends, Header, HTTPException, Request
from jose import jwt, JWTError

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Raised by a verifier when a bearer token cannot be trusted."""


class TokenVerifier(Protocol):
    def verify(self, token: str) -> str:
        """Return the verified principal email or raise InvalidTokenError."""
        ...


class JWTTokenVerifier:
    """Verifies identity-provider tokens signed with a shared secret or public key."""

    def __init__(
        self,
        key: str,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        self.key = key
        self.algorithm = algorithm
        self.audience = audience
        self.issuer = issuer

    def verify(self, token: str) -> str:
        try:
            claims = jwt.decode(
                token,
                self.key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            raise InvalidTokenError(str(e)) from e
        email = claims.get("email") or claims.get("sub")
        if not email:
            raise InvalidTokenError("Token has no email claim")
        return email


def get_verifier(request: Request) -> TokenVerifier:
    return request.app.state.verifier


def verify_token(
    request: Request,
    authorization: Optional[str] = Header(None),
    verifier: TokenVerifier = Depends(get_verifier),
) -> str:
    """Guard for protected routes; yields the caller's verified email."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized access")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized access")
    try:
        email = verifier.verify(token)
    except InvalidTokenError as e:
        logger.warning(f"Rejected token on {request.url.path}: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized access")
    request.state.principal = email
    return email


def ensure_owner(owner: Optional[str], principal: str):
    # exact match, no case folding
    if owner != principal:
        logger.warning(f"{principal} tried to act on resources of {owner}")
        raise HTTPException(status_code=403, detail="Forbidden access")
