"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import PurePosixPath, PureWindowsPath
from types import MappingProxyType
from typing import Mapping
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

# Keys that must be present in a Service Bus connection string
REQUIRED_CONNECTION_KEYS = ("Endpoint", "SharedAccessKeyName", "SharedAccessKey")


def parse_connection_string(connection_string: str) -> dict[str, str]:
    """
    Splits an Azure connection string ("Key=Value;Key=Value") into a dict.
    Values may themselves contain '=' (base64 keys), so only the first one splits.
    """
    parts = {}
    for segment in connection_string.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            raise ValueError(f"Malformed connection string segment: '{segment}'")
        parts[key.strip()] = value.strip()
    return parts


def _is_absolute(path: str) -> bool:
    return PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute()


class ListenerConfig(BaseModel):
    """A validated configuration model for the listener."""

    # Service Bus
    connection_string: str = Field(..., repr=False)
    listen_queue: str
    success_queue: str
    error_queue: str
    max_concurrent_calls: int = 1
    receive_timeout: int = 60
    lock_renewal_interval: int = 30

    # Blob storage
    container_url: str
    sas_token: str = Field(default="", repr=False)

    # Category -> destination root
    media_mappings: dict[str, str] = Field(default_factory=dict)

    # Download settings
    verify_size: bool = False

    # Logging
    log_level: str = "INFO"
    json_log_dir: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field(default="", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("connection_string")
    @classmethod
    def validate_connection_string(cls, v: str) -> str:
        """Ensures the Service Bus connection string carries SAS credentials."""
        parts = parse_connection_string(v)
        missing = [key for key in REQUIRED_CONNECTION_KEYS if not parts.get(key)]
        if missing:
            raise ValueError(
                f"Service Bus connection string is missing: {', '.join(missing)}."
            )
        if not parts["Endpoint"].startswith(("sb://", "https://")):
            raise ValueError("Service Bus endpoint must start with sb:// or https://.")
        return v

    @field_validator("listen_queue", "success_queue", "error_queue")
    @classmethod
    def validate_queue_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Queue names cannot be empty.")
        return v

    @field_validator("max_concurrent_calls")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent jobs."""
        if v < 1 or v > 32:
            raise ValueError("max_concurrent_calls must be between 1 and 32.")
        return v

    @field_validator("receive_timeout")
    @classmethod
    def validate_receive_timeout(cls, v: int) -> int:
        # Service Bus caps the long-poll timeout at 230 seconds
        if v < 1 or v > 230:
            raise ValueError("receive_timeout must be between 1 and 230 seconds.")
        return v

    @field_validator("lock_renewal_interval")
    @classmethod
    def validate_lock_renewal_interval(cls, v: int) -> int:
        # Must stay under the queue's lock duration, at most 5 minutes
        if v < 5 or v > 150:
            raise ValueError(
                "lock_renewal_interval must be between 5 and 150 seconds."
            )
        return v

    @field_validator("container_url")
    @classmethod
    def validate_container_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"container_url must be an http(s) URL, got: '{v}'")
        return v.rstrip("/")

    @field_validator("sas_token")
    @classmethod
    def validate_sas_token(cls, v: str) -> str:
        return v.lstrip("?")

    @field_validator("media_mappings")
    @classmethod
    def validate_mappings(cls, v: dict[str, str]) -> dict[str, str]:
        """Requires at least one mapping and absolute destination roots."""
        if not v:
            raise ValueError("At least one media mapping is required.")
        seen: dict[str, str] = {}
        for category, root in v.items():
            if not category or "/" in category:
                raise ValueError(f"Invalid category name: '{category}'")
            # Categories are matched case-insensitively
            other = seen.setdefault(category.casefold(), category)
            if other != category:
                raise ValueError(
                    f"Categories '{other}' and '{category}' differ only by case."
                )
            if not root or not _is_absolute(root):
                raise ValueError(
                    f"Destination for '{category}' must be an absolute path, "
                    f"got: '{root}'"
                )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: '{v}'")
        return v

    @model_validator(mode="after")
    def validate_queue_conflicts(self) -> "ListenerConfig":
        """The listener must not consume its own notifications."""
        if self.listen_queue in (self.success_queue, self.error_queue):
            raise ValueError(
                "listen_queue must differ from success_queue and error_queue."
            )
        return self

    @property
    def category_mapping(self) -> Mapping[str, str]:
        """A read-only view of the media mappings."""
        return MappingProxyType(dict(self.media_mappings))

    @property
    def service_bus_credentials(self) -> dict[str, str]:
        return parse_connection_string(self.connection_string)

    @classmethod
    def get_ini_sections(cls) -> dict[str, tuple[str, ...]]:
        """Returns the INI section each scalar setting lives in."""
        return {
            "service_bus": (
                "connection_string",
                "listen_queue",
                "success_queue",
                "error_queue",
                "max_concurrent_calls",
                "receive_timeout",
                "lock_renewal_interval",
            ),
            "blob_storage": ("container_url", "sas_token"),
            "download": ("verify_size",),
            "logging": ("log_level", "json_log_dir"),
        }
