from homecare.core.constants import RoleEnum
from homecare.core.exceptions import AuthError
from homecare.schemas.user import UserContext

CLINICAL_ROLES = (RoleEnum.DOCTOR, RoleEnum.NURSE, RoleEnum.SPECIALIST, RoleEnum.THERAPIST)
TRAINING_ROLES = CLINICAL_ROLES + (RoleEnum.LAB_ATTENDANT,)


class PermissionHelper:
    @staticmethod
    def is_admin(context: UserContext) -> bool:
        return context.role == RoleEnum.ADMIN

    @staticmethod
    def is_clinician(context: UserContext) -> bool:
        return context.role in CLINICAL_ROLES

    @staticmethod
    def can_take_exams(context: UserContext) -> bool:
        return context.role in TRAINING_ROLES

    @staticmethod
    def can_manage_training(context: UserContext) -> bool:
        return PermissionHelper.is_admin(context)

    @staticmethod
    def can_edit_health_records(context: UserContext) -> bool:
        return PermissionHelper.is_admin(context) or PermissionHelper.is_clinician(context)

    @staticmethod
    def can_verify_health_records(context: UserContext) -> bool:
        return context.role in (RoleEnum.ADMIN, RoleEnum.DOCTOR, RoleEnum.SPECIALIST)

    @staticmethod
    def require_admin(context: UserContext):
        if not PermissionHelper.is_admin(context):
            raise AuthError("You do not have permission to perform this action.", 403)

    @staticmethod
    def require_record_editor(context: UserContext):
        if not PermissionHelper.can_edit_health_records(context):
            raise AuthError("You do not have permission to perform this action.", 403)

    @staticmethod
    def require_record_verifier(context: UserContext):
        if not PermissionHelper.can_verify_health_records(context):
            raise AuthError("You do not have permission to perform this action.", 403)
