"""
plexsync: mirrors folder trees announced on an Azure Service Bus queue from
Blob Storage into local media library folders.
"""

__version__ = "0.1.0"
