"""Staff account model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from clinic_scheduler.database import Base

ADMIN_ROLE = "admin"
STAFF_ROLE = "staff"


class User(Base):
    """Clinic staff member identified by the email in a bearer token.

    There are no passwords here; tokens are issued from the CLI.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default=STAFF_ROLE)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
