"""
Azure Layer.

This package talks to Azure Service Bus (inbound jobs and outcome
notifications) and Azure Blob Storage (the files to mirror) over their REST
APIs.
"""

from .auth import ServiceBusAuthenticator, generate_sas_token
from .blob_client import BlobObjectFetcher
from .service_bus import ServiceBusChannel, ServiceBusClient, ServiceBusQueueTransport

__all__ = [
    "BlobObjectFetcher",
    "ServiceBusAuthenticator",
    "ServiceBusChannel",
    "ServiceBusClient",
    "ServiceBusQueueTransport",
    "generate_sas_token",
]
