"""Organization model: UN agencies, funds and programmes."""

from sqlalchemy import Column, String, Integer

from unjobs.models.base import Base, TimestampMixin


class Organization(TimestampMixin, Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity, matched case-insensitively by the organization resolver
    code = Column(String(50), index=True)
    name = Column(String(255), nullable=False)
    short_name = Column(String(100))
    long_name = Column(String(500))
