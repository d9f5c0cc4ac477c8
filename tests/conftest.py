import os
import re
from datetime import date
from types import SimpleNamespace

import pytest
from bson import ObjectId

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")


@pytest.fixture
def today():
    return date(2024, 6, 15)


@pytest.fixture
def make_loan():
    """Builds loan-like objects carrying the attributes the services read."""

    def _make(**overrides):
        fields = {
            "id": "loan-1",
            "user_id": "owner-1",
            "client_id": "client-1",
            "principal_amount": 300.0,
            "interest_rate": 0.0,
            "interest_mode": "on_total",
            "payment_type": "installment",
            "installments": 3,
            "installment_dates": [date(2024, 1, 10), date(2024, 2, 10), date(2024, 3, 10)],
            "due_date": date(2024, 3, 10),
            "start_date": date(2023, 12, 10),
            "contract_date": date(2023, 12, 10),
            "total_interest": 0.0,
            "remaining_balance": 300.0,
            "total_paid": 0.0,
            "interest_only_paid": 0.0,
            "paid_before_renegotiation": 0.0,
            "partial_payments": {},
            "daily_penalties": {},
            "penalty_last_applied": None,
            "overdue_config": None,
            "status": "pending",
            "is_historical": False,
            "is_third_party": False,
            "third_party_name": None,
            "skip_saturdays": False,
            "skip_sundays": False,
            "skip_holidays": False,
            "notes": None,
        }
        fields.update(overrides)
        return SimpleNamespace(**fields)

    return _make


def _field(doc, key):
    if key == "_id":
        return str(doc.id)
    value = getattr(doc, key, None)
    return getattr(value, "value", value)


def _expected(key, value):
    if key == "_id":
        return str(value)
    return getattr(value, "value", value)


def _matches(doc, query):
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in condition):
                return False
            continue
        actual = _field(doc, key)
        if not isinstance(condition, dict):
            if actual != _expected(key, condition):
                return False
            continue
        for op, value in condition.items():
            if op == "$ne" and actual == _expected(key, value):
                return False
            if op == "$in" and actual not in [_expected(key, v) for v in value]:
                return False
            if op == "$regex":
                flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                if not re.search(value, str(actual or ""), flags):
                    return False
            if op not in ("$ne", "$in", "$regex", "$options"):
                raise NotImplementedError(f"operator {op} is not supported by FakeDocument")
    return True


class FakeQuery:
    def __init__(self, model, query):
        self.model = model
        self.query = query
        self._skip = 0
        self._limit = None
        model.queries.append(query)

    def _found(self):
        return [d for d in self.model.docs if _matches(d, self.query)]

    def sort(self, *args):
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def to_list(self):
        found = self._found()[self._skip:]
        return found if self._limit is None else found[: self._limit]

    async def count(self):
        return len(self._found())

    async def delete(self):
        for doc in self._found():
            self.model.docs.remove(doc)


class FakeDocument:
    """Stand-in for a beanie Document that keeps its records in `docs`."""

    docs: list
    inserted: list
    queries: list

    def __init__(self, **fields):
        self.id = fields.pop("id", None)
        self.saved = 0
        for name, value in fields.items():
            setattr(self, name, value)

    @classmethod
    def add(cls, **fields):
        doc = cls(**fields)
        if doc.id is None:
            doc.id = str(ObjectId())
        cls.docs.append(doc)
        return doc

    @classmethod
    def find(cls, query=None):
        return FakeQuery(cls, query)

    @classmethod
    async def find_one(cls, query):
        found = await FakeQuery(cls, query).to_list()
        return found[0] if found else None

    @classmethod
    async def get(cls, doc_id):
        return next((d for d in cls.docs if str(d.id) == str(doc_id)), None)

    async def insert(self):
        if self.id is None:
            self.id = str(ObjectId())
        type(self).docs.append(self)
        type(self).inserted.append(self)
        return self

    async def save(self):
        self.saved += 1

    async def delete(self):
        if self in type(self).docs:
            type(self).docs.remove(self)


@pytest.fixture
def fake_model():
    """Creates a fresh FakeDocument subclass; keyword arguments become field defaults."""

    def _make(name="FakeModel", **defaults):
        return type(name, (FakeDocument,), {"docs": [], "inserted": [], "queries": [], **defaults})

    return _make
