from __future__ import annotations

from datetime import date

import pytest

from finapp import models
from finapp.services import FixedAccountService


TODAY = date(2026, 3, 15)


def get_category(db_session, name: str) -> models.Category:
    return db_session.query(models.Category).filter_by(name=name, is_default=True).one()


@pytest.fixture()
def portfolio(db_session, user, make_fixed_account):
    landlord = models.Supplier(user_id=user.id, name="Landlord")
    db_session.add(landlord)
    db_session.commit()

    rent, _ = make_fixed_account(supplier_id=landlord.id)
    streaming, _ = make_fixed_account(
        description="Streaming",
        amount=1200.0,
        periodicity=models.Periodicity.YEARLY,
        category_id=get_category(db_session, "Subscriptions").id,
    )
    freelance, _ = make_fixed_account(
        description="Freelance",
        amount=100.0,
        periodicity=models.Periodicity.WEEKLY,
        category_id=get_category(db_session, "Salary").id,
    )
    storage, _ = make_fixed_account(
        description="Storage unit",
        amount=90.0,
        periodicity=models.Periodicity.QUARTERLY,
    )

    rent.next_due_date = date(2026, 3, 20)
    streaming.next_due_date = date(2026, 4, 5)
    streaming.is_paid = True
    freelance.next_due_date = date(2026, 3, 1)
    storage.next_due_date = date(2026, 6, 1)
    storage.is_active = False
    db_session.commit()
    return rent, streaming, freelance, storage


def test_statistics_counts(db_session, user, portfolio):
    stats = FixedAccountService(db_session).get_statistics(user_id=user.id, today=TODAY)

    assert stats["total"] == 4
    assert stats["total_amount"] == 1690.0
    assert stats["active"] == 3
    assert stats["inactive"] == 1
    assert stats["paid"] == 1
    assert stats["unpaid"] == 3
    assert stats["overdue"] == 1
    assert stats["due_this_month"] == 1
    assert stats["due_next_month"] == 1


def test_statistics_breakdowns(db_session, user, portfolio):
    stats = FixedAccountService(db_session).get_statistics(user_id=user.id, today=TODAY)

    assert stats["by_periodicity"] == {
        models.Periodicity.DAILY: 0,
        models.Periodicity.WEEKLY: 1,
        models.Periodicity.MONTHLY: 1,
        models.Periodicity.QUARTERLY: 1,
        models.Periodicity.YEARLY: 1,
    }
    assert stats["by_category"]["Rent"] == {"count": 2, "total_amount": 390.0, "color": "#C62828"}
    assert stats["by_category"]["Subscriptions"]["total_amount"] == 1200.0
    assert stats["by_category"]["Salary"]["count"] == 1
    assert stats["by_supplier"] == {"Landlord": {"count": 1, "total_amount": 300.0}}
    assert stats["by_status"][models.OccurrenceStatus.PENDING] == 4
    assert stats["by_status"][models.OccurrenceStatus.PAID] == 0


def test_statistics_equivalents(db_session, user, portfolio):
    stats = FixedAccountService(db_session).get_statistics(user_id=user.id, today=TODAY)

    # 300 + 1200/12 + 100*4.33 + 90/3
    assert stats["total_monthly_value"] == pytest.approx(863.0)
    # 300*12 + 1200 + 100*52 + 90*4
    assert stats["total_yearly_value"] == pytest.approx(10360.0)


def test_statistics_for_user_without_templates(db_session):
    other = models.User(email="empty@example.com", is_active=True)
    db_session.add(other)
    db_session.commit()

    stats = FixedAccountService(db_session).get_statistics(user_id=other.id, today=TODAY)

    assert stats["total"] == 0
    assert stats["total_amount"] == 0.0
    assert stats["by_category"] == {}
    assert stats["total_monthly_value"] == 0.0
