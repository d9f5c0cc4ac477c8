from datetime import date
from types import SimpleNamespace

import pytest

from cobrafacil.services import reminder_service as reminder_module
from cobrafacil.services.reminder_service import ReminderService, due_item

TODAY = date(2024, 6, 15)


@pytest.fixture
def reminders(monkeypatch, fake_model, make_loan):
    loan_model = fake_model("Loan")
    client_model = fake_model("Client")
    user_model = fake_model("User")
    notifications, messages = [], []

    async def create_notification(**kwargs):
        notifications.append(kwargs)

    async def send_text(phone, message, token):
        messages.append((phone, message))
        return True

    monkeypatch.setattr(reminder_module, "Loan", loan_model)
    monkeypatch.setattr(reminder_module, "Client", client_model)
    monkeypatch.setattr(reminder_module, "User", user_model)
    monkeypatch.setattr(reminder_module.notification_service, "create_notification", create_notification)
    monkeypatch.setattr(reminder_module.whatsapp_service, "send_text", send_text)

    owner = user_model.add(full_name="Carla", is_active=True, phone="5511999990000",
                           whatsapp_instance_token="tok", pix_key="carla@pix.com")
    client = client_model.add(user_id=str(owner.id), full_name="Maria", phone="5511988887777")

    def add_loan(due, **overrides):
        fields = vars(make_loan(user_id=str(owner.id), client_id=str(client.id), installments=1,
                                installment_dates=[due], due_date=due, **overrides))
        fields.pop("id")
        return loan_model.add(**fields)

    return SimpleNamespace(add_loan=add_loan, owner=owner, client=client,
                           notifications=notifications, messages=messages)


def test_due_item_counts_interest_only_cash(make_loan):
    loan = make_loan(total_paid=100.0, interest_only_paid=30.0, remaining_balance=200.0,
                     partial_payments={"0": 100.0})
    item = due_item(loan, "Maria")
    assert item["total_paid"] == 130.0
    assert item["current_installment"] == 2
    assert item["installment_amount"] == 100.0


@pytest.mark.asyncio
async def test_due_today_goes_to_owner_and_tomorrow_to_client(reminders):
    reminders.add_loan(TODAY)
    reminders.add_loan(date(2024, 6, 16))
    reminders.add_loan(date(2024, 6, 20))
    reminders.add_loan(TODAY, is_historical=True)

    result = await ReminderService().check_loan_reminders(TODAY)

    assert result == {"checked_loans": 3, "due_today": 1, "sent_count": 1, "early_reminders_sent": 1}
    assert len(reminders.notifications) == 1
    assert reminders.notifications[0]["user_id"] == str(reminders.owner.id)

    by_phone = dict(reminders.messages)
    assert "VENCIMENTOS DE HOJE" in by_phone[reminders.owner.phone]
    assert "carla@pix.com" in by_phone[reminders.client.phone]
    assert "16/06/2024" in by_phone[reminders.client.phone]


@pytest.mark.asyncio
async def test_owner_without_whatsapp_gets_only_the_notification(reminders):
    reminders.owner.is_active = False
    reminders.add_loan(TODAY)
    reminders.add_loan(date(2024, 6, 16))

    result = await ReminderService().check_loan_reminders(TODAY)

    assert result["due_today"] == 1
    assert result["sent_count"] == 0
    assert result["early_reminders_sent"] == 0
    assert len(reminders.notifications) == 1
    assert reminders.messages == []
