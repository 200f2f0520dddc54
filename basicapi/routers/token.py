"""Token issuing for benchmark clients."""
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..services.jwt import generate_jwt
from ..services.policies import READER_POLICY, WRITER_POLICY


router = APIRouter(tags=["token"])


class TokenResponse(BaseModel):
    token: str


def scopes_for(username: str) -> list[str]:
    """Readers get read access; writers get read and write access."""
    lowered = username.lower()
    if lowered.startswith("writer"):
        return [READER_POLICY, WRITER_POLICY]
    if lowered.startswith("reader"):
        return [READER_POLICY]
    return []


@router.get("/token", response_model=TokenResponse)
def get_token(request: Request, username: Optional[str] = None):
    """Issue a bearer token signed with the test certificate."""
    if not username:
        raise HTTPException(status_code=400, detail="username is required")

    token = generate_jwt(request.app.state.jwt_options, username, scopes_for(username))
    return TokenResponse(token=token)
