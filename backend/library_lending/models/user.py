"""
User model. Identity is captured elsewhere; this table holds the profile,
the role and the blocked flag the lending rules depend on.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint

from library_lending.db.base import Base, TimestampMixin

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(10), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_USER)
    is_blocked = Column(Boolean, nullable=False, default=False)

    # Bumped by every borrow confirmation; the UPDATE row lock serializes
    # ledger mutations for one user
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, blocked={self.is_blocked})>"
