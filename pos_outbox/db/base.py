from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker
from pos_outbox.core.config import settings

LOCAL_DB_URL = settings.LOCAL_DB_URL
REMOTE_DB_URL = settings.REMOTE_DB_URL

# Device-local store: offline queue and device settings
engine = create_async_engine(LOCAL_DB_URL, future=True, echo=False)
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Hosted store shared by all devices of a tenant
remote_engine = create_async_engine(REMOTE_DB_URL, future=True, echo=False)
RemoteSessionLocal = sessionmaker(
    bind=remote_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()
RemoteBase = declarative_base()


def make_session_factory(db_engine):
    return sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def get_session_factory():
    return AsyncSessionLocal