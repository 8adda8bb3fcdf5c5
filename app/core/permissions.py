from enum import Enum


class Role(str, Enum):
    CLIENT = "client"
    FINANCIER = "financier"
    ADMIN = "admin"


class PermissionCode(str, Enum):
    # Loan intake
    LOAN_APPLY = "loan.apply"
    LOAN_VIEW_OWN = "loan.view_own"
    LOAN_VIEW_ALL = "loan.view_all"
    LOAN_REVIEW = "loan.review"
    LOAN_DISBURSE = "loan.disburse"

    # Documents
    DOCUMENT_UPLOAD = "document.upload"
    DOCUMENT_REVIEW = "document.review"

    # Expenditure / claims
    EXPENDITURE_VIEW = "expenditure.view"
    EXPENDITURE_MANAGE = "expenditure.manage"
    CLAIM_SUBMIT = "claim.submit"
    CLAIM_REVIEW = "claim.review"

    # Administration
    PAYMENT_RECONCILE = "payment.reconcile"
    USER_MANAGE = "user.manage"
    FINANCIER_MANAGE = "financier.manage"
    SYSTEM_MANAGE = "system.manage"
    ANALYTICS_VIEW = "analytics.view"


ROLE_PERMISSIONS: dict[Role, frozenset[PermissionCode]] = {
    Role.CLIENT: frozenset(
        {
            PermissionCode.LOAN_APPLY,
            PermissionCode.LOAN_VIEW_OWN,
            PermissionCode.DOCUMENT_UPLOAD,
            PermissionCode.EXPENDITURE_VIEW,
            PermissionCode.EXPENDITURE_MANAGE,
            PermissionCode.CLAIM_SUBMIT,
        }
    ),
    Role.FINANCIER: frozenset(
        {
            PermissionCode.LOAN_VIEW_ALL,
            PermissionCode.LOAN_REVIEW,
            PermissionCode.LOAN_DISBURSE,
            PermissionCode.DOCUMENT_UPLOAD,
            PermissionCode.DOCUMENT_REVIEW,
            PermissionCode.EXPENDITURE_VIEW,
            PermissionCode.CLAIM_REVIEW,
        }
    ),
    Role.ADMIN: frozenset(PermissionCode),
}


def permissions_for(role: Role | str) -> frozenset[PermissionCode]:
    return ROLE_PERMISSIONS.get(Role(role), frozenset())


def has_permission(role: Role | str, permission: PermissionCode | str) -> bool:
    return PermissionCode(permission) in permissions_for(role)


def roles_with(permission: PermissionCode | str) -> list[Role]:
    code = PermissionCode(permission)
    return [role for role, granted in ROLE_PERMISSIONS.items() if code in granted]
