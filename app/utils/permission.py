from fastapi import HTTPException, status

from app.schemas.user import UserContext
from app.core.constants import RoleEnum


class PermissionHelper:
    @staticmethod
    def is_admin(context: UserContext) -> bool:
        return context.role == RoleEnum.ADMIN

    @staticmethod
    def is_teacher(context: UserContext) -> bool:
        return context.role == RoleEnum.TEACHER

    @staticmethod
    def can_grade(context: UserContext) -> bool:
        return PermissionHelper.is_admin(context) or PermissionHelper.is_teacher(context)

    @staticmethod
    def require_grading_permission(context: UserContext):
        if not PermissionHelper.can_grade(context):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only teachers and admins can grade assignments."
            )
