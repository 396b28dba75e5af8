from dataclasses import dataclass

from app.db.models import UserRole, STAFF_ROLES


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, passed explicitly into every core operation."""

    user_id: str
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN

    @property
    def is_applicant(self) -> bool:
        return self.role == UserRole.APPLICANT
