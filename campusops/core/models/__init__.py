from campusops.core.models.tenant import Campus, Tenant
from campusops.core.models.employee import ContactDetail, EmploymentDetail, PersonalDetail

__all__ = [
    "Campus",
    "ContactDetail",
    "EmploymentDetail",
    "PersonalDetail",
    "Tenant",
]
