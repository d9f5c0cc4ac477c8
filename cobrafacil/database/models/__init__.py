from cobrafacil.database.models.user_model import User
from cobrafacil.database.models.client_model import Client
from cobrafacil.database.models.loan_model import Loan, LoanPayment
from cobrafacil.database.models.employee_model import Employee
from cobrafacil.database.models.notification_model import Notification
from cobrafacil.database.models.bill_model import Bill
from cobrafacil.database.models.activity_log_model import ActivityLog
from cobrafacil.database.models.client_document_model import ClientDocument

__all__ = [
    "User",
    "Client",
    "Loan",
    "LoanPayment",
    "Employee",
    "Notification",
    "Bill",
    "ActivityLog",
    "ClientDocument",
]
