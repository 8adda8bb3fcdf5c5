from app.models.audit_log import AuditLog
from app.models.document import Document
from app.models.expenditure_item import ExpenditureItem
from app.models.expense_claim import ExpenseClaim
from app.models.financier import Financier
from app.models.loan_application import LoanApplication
from app.models.payment_entry import PaymentEntry
from app.models.system_setting import SystemSetting
from app.models.training_course import TrainingCourse
from app.models.user import User

__all__ = [
    "AuditLog",
    "Document",
    "ExpenditureItem",
    "ExpenseClaim",
    "Financier",
    "LoanApplication",
    "PaymentEntry",
    "SystemSetting",
    "TrainingCourse",
    "User",
]
