from app.crud.base import CRUDBase
from app.models.user import User

class CRUDUser(CRUDBase[User, None, None]):
    """Learners are provisioned by the identity service; this side only reads them."""

user = CRUDUser(User)
