"""
Plugin Registry Client.

Async HTTP client for the plugin registry API.

Routes (relative to <registry_url>/api/v<api_version>):
- GET  /{vendor}/{name}/v/{tag|latest}?expand[]=plugin   -> Version
- GET  /{vendor}/{name}/v?expand[]=plugin                -> VersionList
- POST /{vendor}/{name}/v/{tag}/downloads                -> download count increment

Non-2xx answers to lookups mean "not found" (None). Transport failures and
unreadable bodies raise RegistryUnavailable.
"""

import asyncio
from typing import Any
from urllib.parse import quote

import httpx

from plugpm.errors import RegistryUnavailable
from plugpm.logger import PluginsLogger
from plugpm.plugin.semver import LATEST
from plugpm.registry.entities import EntityError, Version, VersionList

DEFAULT_USER_AGENT = "plugpm"

_EXPAND_PLUGIN = {"expand[]": "plugin"}


class RegistryClient:
    """
    Client for the plugin registry.

    The user agent (carrying the client version) is configuration passed at
    construction. An httpx.AsyncClient can be injected, mostly for tests.
    """

    def __init__(
        self,
        registry_url: str,
        api_version: str = "1",
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        logger: PluginsLogger | None = None,
        client: httpx.AsyncClient | None = None,
        retry_delay: float = 0.5,
    ):
        """
        Initialize RegistryClient.

        Args:
            registry_url: Registry base URL (e.g. "https://plugins.example.org")
            api_version: API version segment
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            logger: Injected logger
            client: Pre-built HTTP client (its base_url is left untouched)
            retry_delay: Pause before retrying a download increment
        """
        self.api_base_url = f"{registry_url.rstrip('/')}/api/v{api_version}"
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.logger = logger or PluginsLogger()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            follow_redirects=True,
        )

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Underlying HTTP client, shared with the archive fetcher."""
        return self._client

    def _url(self, plugin_key: str, *segments: str) -> str:
        path = "/".join(quote(segment, safe="") for segment in segments)
        url = f"{self.api_base_url}/{quote(plugin_key, safe='/')}"
        return f"{url}/{path}" if path else url

    async def _get_json(self, url: str, plugin_key: str) -> Any | None:
        try:
            response = await self._client.get(url, params=_EXPAND_PLUGIN)
        except httpx.HTTPError as e:
            raise RegistryUnavailable(
                f"Could not reach plugin registry: {e}", plugin_key=plugin_key
            ) from e

        if not response.is_success:
            self.logger.info(
                "registry.notFound",
                "Registry answered with a non-success status.",
                pluginKey=plugin_key,
                url=url,
                status=response.status_code,
            )
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RegistryUnavailable(
                f"Registry returned invalid JSON for {url}", plugin_key=plugin_key
            ) from e

    async def get_version(self, plugin_key: str, version: str | None = None) -> Version | None:
        """
        Get one release of a plugin.

        Args:
            plugin_key: Plugin key
            version: Tag, "dev-*" ref, or None/"latest" for the newest release

        Returns:
            Version, or None if the registry does not know it

        Raises:
            RegistryUnavailable: If the registry cannot be reached or answers garbage
        """
        data = await self._get_json(self._url(plugin_key, "v", version or LATEST), plugin_key)
        if data is None:
            return None

        try:
            return Version.from_json(data)
        except EntityError as e:
            raise RegistryUnavailable(
                f"Registry returned an invalid version: {e}",
                plugin_key=plugin_key,
                constraint=version,
            ) from e

    async def get_version_list(self, plugin_key: str) -> VersionList | None:
        """
        Get every published tag of a plugin.

        Returns:
            VersionList, or None if the registry does not know the plugin

        Raises:
            RegistryUnavailable: If the registry cannot be reached or answers garbage
        """
        data = await self._get_json(self._url(plugin_key, "v"), plugin_key)
        if data is None:
            return None

        try:
            return VersionList.from_json(data)
        except EntityError as e:
            raise RegistryUnavailable(
                f"Registry returned an invalid version list: {e}", plugin_key=plugin_key
            ) from e

    async def increment_download(self, plugin_key: str, tag: str, retries: int = 1) -> bool:
        """
        Tell the registry a release was downloaded.

        Best effort: failures are logged and retried once, never raised.

        Returns:
            True if the registry acknowledged the increment
        """
        url = self._url(plugin_key, "v", tag, "downloads")

        for attempt in range(retries + 1):
            try:
                response = await self._client.post(url, timeout=self.timeout)
                if response.is_success:
                    return True
                reason = f"HTTP {response.status_code}"
            except httpx.HTTPError as e:
                reason = str(e) or type(e).__name__

            self.logger.warning(
                "registry.incrementDownloadError",
                "Could not increment download count.",
                pluginKey=plugin_key,
                version=tag,
                attempt=attempt + 1,
                reason=reason,
            )
            if attempt < retries:
                await asyncio.sleep(self.retry_delay)

        return False


__all__ = ["RegistryClient", "DEFAULT_USER_AGENT"]
