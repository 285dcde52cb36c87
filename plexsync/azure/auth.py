"""
Handles Shared Access Signature (SAS) authentication for Azure Service Bus.
"""

import base64
import hashlib
import hmac
import logging
import time
from urllib.parse import quote_plus

from plexsync.exceptions import ConfigurationError
from plexsync.models.config import REQUIRED_CONNECTION_KEYS, parse_connection_string

log = logging.getLogger(__name__)


def generate_sas_token(resource_uri: str, key_name: str, key: str, expiry: int) -> str:
    """
    Builds a SAS token for a Service Bus resource.

    Args:
        resource_uri: The https URI of the namespace or entity.
        key_name: Name of the shared access policy.
        key: The policy's primary or secondary key.
        expiry: Unix timestamp after which the token is rejected.

    Returns:
        The value for the HTTP Authorization header.
    """
    encoded_uri = quote_plus(resource_uri)
    string_to_sign = f"{encoded_uri}\n{expiry}".encode("utf-8")
    digest = hmac.new(key.encode("utf-8"), string_to_sign, hashlib.sha256).digest()
    signature = quote_plus(base64.b64encode(digest))
    return (
        f"SharedAccessSignature sr={encoded_uri}&sig={signature}"
        f"&se={expiry}&skn={key_name}"
    )


class ServiceBusAuthenticator:
    """
    Produces Authorization headers for a Service Bus namespace, reusing one
    token until it is close to expiry.
    """

    def __init__(self, connection_string: str, token_ttl: int = 3600):
        parts = parse_connection_string(connection_string)
        missing = [key for key in REQUIRED_CONNECTION_KEYS if not parts.get(key)]
        if missing:
            raise ConfigurationError(
                f"Service Bus connection string is missing: {', '.join(missing)}."
            )

        endpoint = parts["Endpoint"]
        if endpoint.startswith("sb://"):
            endpoint = "https://" + endpoint[len("sb://") :]
        self.base_url = endpoint.rstrip("/")
        self.key_name = parts["SharedAccessKeyName"]
        self._key = parts["SharedAccessKey"]
        self.token_ttl = token_ttl

        self._token: str | None = None
        self._expiry = 0

    def get_authorization(self) -> str:
        """Returns a valid namespace-wide SAS token, renewing it when needed."""
        now = int(time.time())
        # Renew five minutes early so a token never expires in flight
        if self._token is None or now >= self._expiry - 300:
            self._expiry = now + self.token_ttl
            self._token = generate_sas_token(
                self.base_url, self.key_name, self._key, self._expiry
            )
            log.debug(f"Issued Service Bus SAS token valid until {self._expiry}")
        return self._token
