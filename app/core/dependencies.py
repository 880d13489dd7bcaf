import logging
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session
from jose import JWTError # type: ignore
from app.db.session import get_db
from app.helpers.s3 import get_object_store
from app.models import User
from app.core.security import decode_access_token, oauth2_scheme
from app.services.imports.import_service import ImportService

logger = logging.getLogger(__name__)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        user_id = int(user_id)
    except (JWTError, ValueError):
        logger.warning("Rejected bearer token")
        raise credentials_exception

    user = db.query(User).filter(
        User.id == user_id,
        User.is_active == True,
        User.is_deleted == False
    ).first()
    if not user:
        raise credentials_exception
    return user

def get_import_service(
    db: Session = Depends(get_db),
    store=Depends(get_object_store),
) -> ImportService:
    return ImportService(db, store)
