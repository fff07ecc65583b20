"""ORM models — imported here so ``Base.metadata`` sees every table."""

from app.models.tour import Review, Tour
from app.models.user import Role, User

__all__ = ["Review", "Role", "Tour", "User"]
