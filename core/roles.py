from enum import Enum


class UserRole(str, Enum):
    user = "user"
    admin = "admin"

    @classmethod
    def list(cls) -> list[str]:  # convenience for validation
        return [r.value for r in cls]
