from sqlalchemy import Column, DateTime, Integer, String, Text

from catalog.database import Base


class Log(Base):
    """
    Audit log entry written for every mutating catalog operation.

    Attributes:
        name: Log category (e.g. 'product-manager')
        message: Escaped log message
        level: Severity (1=CRITICAL, 2=WARNING, 3=NOTICE, 4=INFO)
        status: Read status of the entry
    """
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    message = Column(Text, nullable=False)
    time = Column(DateTime(timezone=True), nullable=False)
    user_agent = Column(String(255), nullable=False)
    request_uri = Column(String(255), nullable=False)
    request_method = Column(String(50), nullable=False)
    ip_address = Column(String(255), nullable=False)
    level = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=False, default=0)
    status = Column(String(50), nullable=False, default="UNREAD")

    def __repr__(self):
        return f"<Log(id={self.id}, name='{self.name}', level={self.level})>"
