"""Console factory.

Wires configuration, the descriptor catalog, the gateway and the engine
components together.

Usage:
    from resource_console.factory import create_console

    console = create_console(env_prefix="MED_")
    listing = console.list_controller("drugs")
    await listing.load()
    await console.close()
"""

import logging
from pathlib import Path

import httpx

from resource_console.config.loader import (
    apply_env_overrides,
    load_console_config,
    resolve_token,
)
from resource_console.config.models import ConsoleConfig
from resource_console.descriptors.loader import load_registry
from resource_console.descriptors.registry import ResourceRegistry
from resource_console.forms.engine import FormEngine, SubmitResult
from resource_console.gateway.http import AsyncCrudGateway
from resource_console.i18n import Translator
from resource_console.listing.controller import ListController
from resource_console.options.loader import OptionLoader
from resource_console.transform.hooks import HookRegistry, default_hooks
from resource_console.uploads.pipeline import UploadPipeline

logger = logging.getLogger(__name__)


class TokenStore:
    """Holds the current bearer token; cleared when the backend answers 401."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def get(self) -> str | None:
        return self._token

    def set(self, token: str | None) -> None:
        self._token = token

    def clear(self) -> None:
        if self._token is not None:
            logger.warning("[Auth] Access token rejected; cleared")
        self._token = None


def get_gateway(
    config: ConsoleConfig,
    tokens: TokenStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncCrudGateway:
    """Create an ``AsyncCrudGateway`` from configuration.

    Args:
        config: Console configuration.
        tokens: Token store (default: empty; requests go out unauthenticated).
        transport: Optional custom httpx transport.

    Returns:
        Configured ``AsyncCrudGateway``.
    """
    tokens = tokens or TokenStore()
    return AsyncCrudGateway(
        config.api.base_url,
        token_provider=tokens.get,
        timeout=config.api.timeout,
        on_unauthorized=tokens.clear,
        transport=transport,
    )


class Console:
    """The assembled engine for one backend.

    Attributes:
        config: Console configuration.
        registry: Registered resource descriptors.
        gateway: The gateway every component talks through.
        tokens: Bearer token store.
        options: Shared option loader.
        hooks: Resource submit hooks.
    """

    def __init__(
        self,
        config: ConsoleConfig,
        registry: ResourceRegistry,
        gateway: AsyncCrudGateway,
        tokens: TokenStore,
        hooks: HookRegistry | None = None,
        translator: Translator | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.gateway = gateway
        self.tokens = tokens
        self.options = OptionLoader(gateway, config.options)
        self.hooks = hooks or default_hooks()
        self.translator = translator

    def list_controller(self, key: str, page_size: int = 10) -> ListController:
        """List controller for resource *key*.

        Raises:
            ResourceNotFoundError: If *key* is not registered.
        """
        return ListController(
            self.registry.get(key),
            self.gateway,
            page_size=page_size,
            base_url=self.config.api.base_url,
        )

    def form_engine(self) -> FormEngine:
        """A fresh form engine (one open form at a time per engine)."""
        return FormEngine(
            self.gateway,
            config=self.config,
            options=self.options,
            uploads=UploadPipeline(
                self.gateway, self.config.uploads, base_url=self.config.api.base_url
            ),
            hooks=self.hooks,
            translator=self.translator,
        )

    async def save(self, engine: FormEngine, listing: ListController) -> SubmitResult:
        """Submit *engine*'s open form; on success re-fetch *listing*'s page."""
        result = await engine.submit()
        if result.ok:
            await listing.after_mutation()
        return result

    async def close(self) -> None:
        await self.gateway.close()


def create_console(
    config_path: Path | None = None,
    env_prefix: str = "",
    config: ConsoleConfig | None = None,
    translator: Translator | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Console:
    """Build a ``Console`` from configuration.

    Priority for configuration:
    1. An explicit ``config`` object
    2. ``config_path`` (or ``console.toml`` in the working directory)
    3. Built-in defaults, when no console.toml exists and no path was given

    Args:
        config_path: Path to console.toml.
        env_prefix: Prefix for environment variable lookups.
        config: Ready-made configuration (skips file loading).
        translator: Optional translation callable.
        transport: Optional custom httpx transport.

    Returns:
        Assembled ``Console``.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` or catalog doesn't exist.
        DescriptorError: If the catalog is invalid.
    """
    if config is None:
        try:
            config = load_console_config(config_path, env_prefix=env_prefix)
        except FileNotFoundError:
            if config_path is not None:
                raise
            logger.debug("[Console] No console.toml found, using defaults")
            config = apply_env_overrides(ConsoleConfig(), env_prefix)

    catalog = Path(config.catalog) if config.catalog else None
    registry = load_registry(catalog)
    tokens = TokenStore(resolve_token(config, env_prefix))
    gateway = get_gateway(config, tokens, transport=transport)
    return Console(config, registry, gateway, tokens, translator=translator)
