"""Imports every model so string relationships resolve and metadata is complete."""
from property_crm.models.user import User  # noqa: F401
from property_crm.models.property import Property  # noqa: F401
from property_crm.models.tenant import Tenant, Lease  # noqa: F401
from property_crm.models.booking import Booking  # noqa: F401
from property_crm.models.payment import Payment  # noqa: F401
from property_crm.models.expense import Expense  # noqa: F401
from property_crm.models.maintenance import MaintenanceRequest, Task  # noqa: F401
from property_crm.models.document import DocumentFolder, Document  # noqa: F401
from property_crm.models.notification import Notification  # noqa: F401
from property_crm.models.messaging import Automation, ScheduledMessage  # noqa: F401
from property_crm.models.audit_log import AuditLog  # noqa: F401
