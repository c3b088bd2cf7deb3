"""
Back-office admin panel
Access: http://localhost:8000/admin
Login: ADMIN_USERNAME / ADMIN_PASSWORD from .env
"""
from sqladmin import Admin, ModelView
from sqladmin.authentication import AuthenticationBackend
from starlette.requests import Request
from .config import get_settings
from .models.account import Account
from .models.appointment import Appointment
from .models.availability import AvailabilityException, WeeklyAvailabilitySlot
from .models.employee import Employee
from .models.service import Service

settings = get_settings()


class AdminAuth(AuthenticationBackend):
    """Single shared admin login"""

    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = form.get("username")
        password = form.get("password")

        if username == settings.ADMIN_USERNAME and password == settings.ADMIN_PASSWORD:
            request.session.update({"authenticated": True})
            return True
        return False

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return request.session.get("authenticated", False)


# ==================== MODEL VIEWS ====================

class AppointmentAdmin(ModelView, model=Appointment):
    """Appointments (read-only: bookings change through the API so overlaps stay impossible)"""
    name = "Appointment"
    name_plural = "Appointments"
    icon = "fa-solid fa-calendar-check"
    can_create = False
    can_edit = False

    column_list = [
        Appointment.id,
        Appointment.start_time,
        Appointment.end_time,
        Appointment.status,
        Appointment.employee_id,
        Appointment.service_id,
        Appointment.guest_name,
        Appointment.created_at
    ]
    column_searchable_list = [Appointment.status, Appointment.guest_name]
    column_sortable_list = [Appointment.start_time, Appointment.created_at, Appointment.status]
    column_default_sort = [(Appointment.start_time, True)]


class EmployeeAdmin(ModelView, model=Employee):
    """Staff"""
    name = "Employee"
    name_plural = "Employees"
    icon = "fa-solid fa-user-tie"

    column_list = [Employee.id, Employee.name, Employee.email, Employee.is_active]
    column_searchable_list = [Employee.name, Employee.email]
    column_sortable_list = [Employee.name]


class ServiceAdmin(ModelView, model=Service):
    """Services"""
    name = "Service"
    name_plural = "Services"
    icon = "fa-solid fa-spa"

    column_list = [
        Service.id,
        Service.title,
        Service.price,
        Service.duration_minutes,
        Service.is_active
    ]
    column_searchable_list = [Service.title]
    column_sortable_list = [Service.title, Service.price]


class WeeklyAvailabilityAdmin(ModelView, model=WeeklyAvailabilitySlot):
    """Weekly working hours (read-only: the API rejects overlapping windows)"""
    name = "Weekly hours"
    name_plural = "Weekly hours"
    icon = "fa-solid fa-clock"
    can_create = False
    can_edit = False

    column_list = [
        WeeklyAvailabilitySlot.employee_id,
        WeeklyAvailabilitySlot.day_of_week,
        WeeklyAvailabilitySlot.start_time,
        WeeklyAvailabilitySlot.end_time,
        WeeklyAvailabilitySlot.is_available
    ]
    column_sortable_list = [WeeklyAvailabilitySlot.employee_id, WeeklyAvailabilitySlot.day_of_week]


class AvailabilityExceptionAdmin(ModelView, model=AvailabilityException):
    """Days off and special hours"""
    name = "Exception"
    name_plural = "Exceptions"
    icon = "fa-solid fa-umbrella-beach"

    column_list = [
        AvailabilityException.employee_id,
        AvailabilityException.exception_date,
        AvailabilityException.is_available,
        AvailabilityException.start_time,
        AvailabilityException.end_time,
        AvailabilityException.reason
    ]
    column_sortable_list = [AvailabilityException.exception_date]
    column_default_sort = [(AvailabilityException.exception_date, True)]


class AccountAdmin(ModelView, model=Account):
    """Client accounts"""
    name = "Account"
    name_plural = "Accounts"
    icon = "fa-solid fa-users"

    column_list = [Account.id, Account.name, Account.email, Account.phone, Account.email_verified]
    column_searchable_list = [Account.name, Account.email, Account.phone]
    column_sortable_list = [Account.name, Account.created_at]


def setup_admin(app, engine):
    """Mount the admin panel"""
    authentication_backend = AdminAuth(secret_key=settings.SECRET_KEY)

    admin = Admin(
        app,
        engine,
        authentication_backend=authentication_backend,
        title="Salon Booking Admin",
        base_url="/admin"
    )

    admin.add_view(AppointmentAdmin)
    admin.add_view(EmployeeAdmin)
    admin.add_view(ServiceAdmin)
    admin.add_view(WeeklyAvailabilityAdmin)
    admin.add_view(AvailabilityExceptionAdmin)
    admin.add_view(AccountAdmin)

    return admin
