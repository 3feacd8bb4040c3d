from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def fresh_transaction(session: Session) -> Iterator[Session]:
    """
    Run the block in a transaction of its own.

    Whatever the session already had open (usually just reads) is committed
    first, so the block's writes commit or roll back as one unit:
        with fresh_transaction(db):
            ... inserts ...
    """
    if session.in_transaction():
        session.commit()
    with session.begin():
        yield session
