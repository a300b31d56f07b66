"""
Remote Session Manager Module
Turns stored Dockmaster credentials into an authenticated session for one run.
"""

from typing import Dict, Optional, Tuple

from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.dockmaster_client import DockmasterClient, DockmasterSession
from dockmaster_sync.exceptions import ConfigurationError
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)


class ConfigCredentialProvider:
    """Credentials from the ``dockmaster`` config section (env-substituted)."""

    def __init__(self, dockmaster_config: Dict):
        self.username = dockmaster_config.get('username')
        self.password = dockmaster_config.get('password')

    def get_credentials(self) -> Tuple[str, str]:
        if not self.username or not self.password:
            raise ConfigurationError("Dockmaster credentials not configured")
        return self.username, self.password


class DatabaseCredentialProvider:
    """Credentials from the ``dockmaster_config`` table."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def get_credentials(self) -> Tuple[str, str]:
        stored = self.gateway.get_credentials()
        if not stored or not stored[0] or not stored[1]:
            raise ConfigurationError("Dockmaster credentials not configured")
        return stored


def build_credential_provider(dockmaster_config: Dict, gateway: Optional[PersistenceGateway] = None):
    """Pick the credential provider named by ``dockmaster.credentials_source``."""
    source = dockmaster_config.get('credentials_source', 'database')
    if source == 'config':
        return ConfigCredentialProvider(dockmaster_config)
    if source == 'database':
        return DatabaseCredentialProvider(gateway or PersistenceGateway())
    raise ConfigurationError(f"Unknown credentials_source: {source}")


class RemoteSessionManager:
    """
    Authenticates against Dockmaster once per run.

    Tokens are never cached: every call to open_session() re-authenticates.
    """

    def __init__(self, client: DockmasterClient, credentials):
        self.client = client
        self.credentials = credentials

    def open_session(self) -> DockmasterSession:
        """
        Authenticate and return a session.

        Raises:
            ConfigurationError: If credentials are missing
            AuthenticationError: If Dockmaster rejects them or answers without token/systemId
        """
        username, password = self.credentials.get_credentials()
        logger.info("Authenticating with Dockmaster")
        return self.client.authenticate(username, password)
