from __future__ import annotations

from sqlalchemy.orm import Session

from .core.database import session_scope
from .models import Category, EntryType, User


# Shared categories every user can attach fixed accounts to
DEFAULT_CATEGORIES = (
    ("Salary", EntryType.INCOME, "#2E7D32"),
    ("Other income", EntryType.INCOME, "#66BB6A"),
    ("Rent", EntryType.EXPENSE, "#C62828"),
    ("Utilities", EntryType.EXPENSE, "#EF6C00"),
    ("Subscriptions", EntryType.EXPENSE, "#6A1B9A"),
    ("Other expenses", EntryType.EXPENSE, "#757575"),
)


def seed_defaults(db: Session) -> User:
    user = db.query(User).filter_by(email="demo@example.com").first()
    if not user:
        user = User(email="demo@example.com", name="Demo", is_active=True)
        db.add(user)
        db.flush()

    for name, entry_type, color in DEFAULT_CATEGORIES:
        exists = db.query(Category).filter_by(user_id=None, name=name, type=entry_type).first()
        if not exists:
            db.add(Category(user_id=None, name=name, type=entry_type, color=color, is_default=True))
    return user


def seed() -> None:
    with session_scope() as db:
        seed_defaults(db)


if __name__ == "__main__":
    seed()
