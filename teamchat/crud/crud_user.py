from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional

from teamchat.core.exceptions import ConflictError
from teamchat.models import User
from teamchat.schemas import user as user_schema

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()

def create_user(db: Session, user: user_schema.UserCreate) -> User:
    db_user = User(username=user.username, email=user.email)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username or email already registered")
    db.refresh(db_user)
    return db_user
