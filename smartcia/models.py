from sqlalchemy import Column, String, Text
from smartcia.database import Base


class Record(Base):
    __tablename__ = "kv_records"

    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)  # JSON document
