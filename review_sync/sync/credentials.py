"""Credential lookup for upstream calls.

Token acquisition and refresh belong to whoever fills in the settings; the
engine only asks for a ready-to-use value per tenant and provider.
"""

from review_sync.core.config import ConfigError, Settings
from review_sync.models import Provider


class SettingsCredentialProvider:
    """Serves the Places API key and a Business Profile bearer token from settings."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def get_credential(self, tenant_id: str, provider: Provider) -> str:
        if provider == Provider.GOOGLE_PLACES:
            value, name = self._settings.google_places_api_key, "GOOGLE_PLACES_API_KEY"
        elif provider == Provider.GOOGLE_BUSINESS:
            value, name = self._settings.google_access_token, "GOOGLE_ACCESS_TOKEN"
        else:
            raise ConfigError(f"No credential source for provider {provider!r}")
        if not value:
            raise ConfigError(f"{name} is required to sync {Provider(provider).value} reviews")
        return value
