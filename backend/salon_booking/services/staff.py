"""
Service catalogue and employee capabilities
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from .. import errors
from ..auth import Actor
from ..models.employee import Employee
from ..models.service import Service

logger = logging.getLogger(__name__)


class StaffService:
    """Which employee performs which service"""

    def __init__(self, db: Session):
        self.db = db

    def list_services(self) -> List[Service]:
        return self.db.query(Service).filter(Service.is_active.is_(True)).order_by(Service.title).all()

    def list_employees_for_service(self, service_id: int) -> List[Employee]:
        service = self.db.get(Service, service_id)
        if service is None:
            raise errors.NotFoundError(f"Service {service_id} not found.")
        return sorted((e for e in service.employees if e.is_active), key=lambda e: e.name)

    def assign_services(self, employee_id: int, service_ids: List[int], actor: Actor) -> Employee:
        """Replace the set of services an employee offers"""
        if not actor.is_admin:
            raise errors.AuthorizationError("Only admins can assign services.")

        employee = self.db.get(Employee, employee_id)
        if employee is None:
            raise errors.NotFoundError(f"Employee {employee_id} not found.")

        wanted = set(service_ids)
        services = self.db.query(Service).filter(Service.id.in_(wanted)).all() if wanted else []
        missing = wanted - {s.id for s in services}
        if missing:
            raise errors.ValidationError(
                f"Unknown service id(s): {', '.join(str(i) for i in sorted(missing))}."
            )

        employee.services = services
        self.db.commit()
        logger.info("Employee %s now offers services %s", employee_id, sorted(wanted))
        return employee
