"""Initial schema: users, books, borrowing_records with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(10), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Books table
    op.create_table(
        "books",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("book_code", sa.String(64), nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("genre", sa.String(100), nullable=False),
        sa.Column("about", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("image", sa.Text(), nullable=False),
        sa.Column("total_copies", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("available_copies", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
        sa.CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        sa.CheckConstraint("available_copies <= total_copies", name="check_available_lte_total"),
    )
    op.create_index("ix_books_id", "books", ["id"])
    op.create_index("ix_books_book_code", "books", ["book_code"], unique=True)
    # Home page query: books with a free copy, sorted by title
    op.create_index("ix_books_available_title", "books", ["available_copies", "title"])

    # Borrowing records table
    op.create_table(
        "borrowing_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("book_id", sa.Integer(), sa.ForeignKey("books.id", ondelete="SET NULL"), nullable=True),
        sa.Column("book_code", sa.String(64), nullable=False),
        sa.Column("borrow_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'borrowed'")),
        sa.Column("borrow_evidence", sa.JSON(), nullable=False),
        sa.Column("return_evidence", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('borrowed', 'returned')", name="check_record_status"),
        sa.CheckConstraint("due_date > borrow_date", name="check_due_after_borrow"),
    )
    op.create_index("ix_borrowing_records_id", "borrowing_records", ["id"])
    op.create_index("ix_borrowing_records_user_id", "borrowing_records", ["user_id"])
    op.create_index("ix_borrowing_records_book_id", "borrowing_records", ["book_id"])
    # ONE ACTIVE LOAN PER USER AND BOOK: enforced by the store so two
    # concurrent borrows of the same book by one user cannot both insert.
    # Partial, so returned history for the pair is unlimited.
    op.create_index(
        "uq_active_borrow_per_user_book",
        "borrowing_records",
        ["user_id", "book_id"],
        unique=True,
        postgresql_where=sa.text("status = 'borrowed'"),
        sqlite_where=sa.text("status = 'borrowed'"),
    )
    op.create_index("ix_borrowing_records_user_status", "borrowing_records", ["user_id", "status"])
    # Overdue scan: WHERE status = 'borrowed' AND due_date < now()
    op.create_index("ix_borrowing_records_status_due", "borrowing_records", ["status", "due_date"])


def downgrade() -> None:
    op.drop_table("borrowing_records")
    op.drop_table("books")
    op.drop_table("users")
