from sqlalchemy.orm import Session
from app.models.client import Client


def get_client(db: Session, client_id: int):
    return db.query(Client).filter(Client.id == client_id).first()
