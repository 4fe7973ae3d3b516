import time
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session, SessionTransactionOrigin

from ..config import Settings, get_settings
from ..core.errors import TransactionTimeout

Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    url = settings.sqlalchemy_url
    if url.startswith("postgresql"):
        timeout_ms = int(settings.transaction_timeout_seconds * 1000)
        return create_engine(
            url,
            future=True,
            echo=False,
            isolation_level="REPEATABLE READ",
            connect_args={"options": f"-c statement_timeout={timeout_ms}"},
        )
    return create_engine(url, future=True, echo=False)


settings = get_settings()

engine = build_engine(settings)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, timeout: float | None = None) -> Iterator[Session]:
    """Run the block as one transaction with a hard commit deadline.

    Exceptions roll everything back. Outliving the deadline also rolls back
    and raises :class:`TransactionTimeout`.
    """
    deadline = timeout if timeout is not None else get_settings().transaction_timeout_seconds
    current = db.get_transaction()
    if current is not None and current.origin is SessionTransactionOrigin.AUTOBEGIN:
        # start the write from a fresh snapshot
        db.commit()
    transaction_ctx = db.begin_nested() if db.in_transaction() else db.begin()
    started = time.monotonic()
    with transaction_ctx:
        yield db
        elapsed = time.monotonic() - started
        if elapsed > deadline:
            raise TransactionTimeout(elapsed)
