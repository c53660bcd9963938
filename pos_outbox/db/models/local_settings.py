
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from pos_outbox.db.base import Base


class LocalSetting(Base):
    __tablename__ = "local_settings"

    """Device-scoped key/value flags.

    Holds the values a device must remember across restarts without the hosted
    store: whether it is the print server, whether it routes prints through the
    shared queue, and its stable device id.
    """

    key = Column(String, primary_key=True)
    value = Column(String, nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
