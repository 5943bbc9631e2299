# Import models here so Alembic can discover metadata.
from comprint.models.user import User  # noqa: F401
from comprint.models.branch import Branch  # noqa: F401

# Catalogue and stock
from comprint.models.product_category import ProductCategory  # noqa: F401
from comprint.models.product import Product  # noqa: F401
from comprint.models.inventory import InventoryRecord  # noqa: F401

# Sales
from comprint.models.customer import Customer  # noqa: F401
from comprint.models.sale import Sale, SaleItem  # noqa: F401
from comprint.models.sales_commission import SalesCommission  # noqa: F401

# Service desk
from comprint.models.service_category import ServiceCategory  # noqa: F401
from comprint.models.service_request import (  # noqa: F401
    ServiceRequest,
    ServiceRequestAttachment,
    ServiceRequestUpdate,
)
