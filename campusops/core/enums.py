from enum import Enum


class EmployeeRole(str, Enum):
    TEACHER = "Teacher"
    EMPLOYEE = "Employee"
    ADMIN = "Admin"


class EmploymentType(str, Enum):
    FULL_TIME = "Full-time"
    PART_TIME = "Part-time"
    CONTRACT = "Contract"
    INTERN = "Intern"


class EmploymentStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    ON_LEAVE = "On Leave"
    TERMINATED = "Terminated"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class BloodGroup(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class EmergencyRelation(str, Enum):
    SPOUSE = "Spouse"
    PARENT = "Parent"
    SIBLING = "Sibling"
    GUARDIAN = "Guardian"
    OTHER = "Other"


EMPLOYEE_ROLES = tuple(r.value for r in EmployeeRole)
