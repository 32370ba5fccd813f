import datetime

from sqlalchemy.orm import Session

from teamchat.models import Presence

def upsert_presence(db: Session, connection_id: str, user_id: int, seen_at: datetime.datetime) -> Presence:
    db_presence = db.query(Presence).filter(Presence.connection_id == connection_id).first()
    if db_presence:
        db_presence.online = True
        db_presence.last_seen = seen_at
    else:
        db_presence = Presence(connection_id=connection_id, user_id=user_id, online=True, last_seen=seen_at)
        db.add(db_presence)
    db.commit()
    db.refresh(db_presence)
    return db_presence

def mark_offline(db: Session, connection_id: str, seen_at: datetime.datetime) -> int:
    updated = db.query(Presence).filter(Presence.connection_id == connection_id).update(
        {Presence.online: False, Presence.last_seen: seen_at}, synchronize_session=False
    )
    db.commit()
    return updated

def mark_all_offline(db: Session) -> int:
    """Flag every record offline. Used at startup, when no connection can still be live."""
    updated = db.query(Presence).filter(Presence.online == True).update(  # noqa: E712
        {Presence.online: False}, synchronize_session=False
    )
    db.commit()
    return updated
