from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from teamchat.core.database import SessionLocal
from teamchat.core.exceptions import AuthenticationError
from teamchat.crud import crud_user
from teamchat.models import user as models_user
from teamchat.services.identity_service import IdentityVerifier
from teamchat.services.session_coordinator import RealtimeSessionCoordinator, coordinator

bearer_scheme = HTTPBearer(auto_error=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_coordinator() -> RealtimeSessionCoordinator:
    return coordinator

def get_identity_verifier(
    realtime: RealtimeSessionCoordinator = Depends(get_coordinator),
) -> IdentityVerifier:
    return realtime.verifier

def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> models_user.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = credentials.credentials if credentials else None
    try:
        user_id = verifier.verify_token(token)
    except AuthenticationError:
        raise credentials_exception

    user = crud_user.get_user(db, user_id)
    if user is None:
        raise credentials_exception
    return user
