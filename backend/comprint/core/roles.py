# comprint/core/roles.py

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"            # full access, the only role that assigns technicians
    SALES = "sales"            # sells, manages customers and service intake
    TECHNICIAN = "technician"  # works on service requests assigned to them
