from .tenants import Tenant
from .sources import Source
from .application_types import ApplicationType, MetaData
from .applications import Application
from .endpoints import Endpoint
from .authentications import Authentication
from .application_authentications import ApplicationAuthentication
from .enums import AvailabilityStatus, ResourceKind, MetaDataType

__all__ = [
    "Tenant",
    "Source",
    "ApplicationType",
    "MetaData",
    "Application",
    "Endpoint",
    "Authentication",
    "ApplicationAuthentication",
    "AvailabilityStatus",
    "ResourceKind",
    "MetaDataType",
]
