"""
User service for resolving platform users.

Users are provisioned outside this backend; this service only resolves
them for authentication and for event workflows that reference a user by
GUID (attendance marking).
"""

from sqlalchemy.orm import Session

from backend.src.models import User
from backend.src.utils.logging_config import get_logger
from backend.src.services.exceptions import NotFoundError
from backend.src.services.guid import GuidService


logger = get_logger("services")


class UserService:
    """
    Service for looking up users.

    Usage:
        >>> service = UserService(db_session)
        >>> user = service.get_by_guid("usr_01hgw2bbg...")
    """

    def __init__(self, db: Session):
        """
        Initialize user service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def get_by_guid(self, guid: str) -> User:
        """
        Get a user by GUID.

        Args:
            guid: User GUID (usr_xxx format)

        Returns:
            User instance

        Raises:
            NotFoundError: If user not found
        """
        if not GuidService.validate_guid(guid, "usr"):
            raise NotFoundError("User", guid)

        try:
            uuid_value = GuidService.parse_guid(guid, "usr")
        except ValueError:
            raise NotFoundError("User", guid)

        user = self.db.query(User).filter(User.uuid == uuid_value).first()
        if not user:
            raise NotFoundError("User", guid)

        return user

    def get_by_id(self, user_id: int) -> User:
        """
        Get a user by internal ID.

        Raises:
            NotFoundError: If user not found
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        return user
