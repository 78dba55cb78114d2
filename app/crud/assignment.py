from app.crud.base import CRUDBase
from app.models.assignment import Assignment


class CRUDAssignment(CRUDBase[Assignment, None, None]):
    pass


assignment = CRUDAssignment(Assignment)
