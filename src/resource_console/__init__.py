"""resource-console: Async declarative resource engine for admin consoles.

Describe each backend collection once (endpoint, list columns, form fields)
and get a paginated list view, create/edit forms with reference and
cascading options, attachment uploads and REST-safe payload building.

Usage:
    from resource_console import create_console, FormEngine, ListController
    from resource_console import ResourceDescriptor, FieldDescriptor, load_registry
    from resource_console import AsyncCrudGateway, ResourceClient, build_payload
    from resource_console import load_console_config, ConsoleConfig
"""

__version__ = "0.1.0"

# Descriptors
from resource_console.descriptors.loader import load_registry
from resource_console.descriptors.models import (
    ColumnDescriptor,
    FieldDescriptor,
    OptionEntry,
    ResourceDescriptor,
)
from resource_console.descriptors.registry import ResourceRegistry

# Gateway
from resource_console.gateway.base import ResourceClient
from resource_console.gateway.envelope import ListPage
from resource_console.gateway.http import AsyncCrudGateway

# Config
from resource_console.config.loader import load_console_config
from resource_console.config.models import ConsoleConfig

# Engine
from resource_console.options.loader import OptionLoader
from resource_console.uploads.pipeline import UploadPipeline
from resource_console.forms.engine import FormEngine, SubmitResult
from resource_console.transform.pipeline import build_payload
from resource_console.listing.controller import ListController, PageState

# Factory
from resource_console.factory import Console, TokenStore, create_console

# Errors
from resource_console.errors import (
    ConsoleError,
    FormStateError,
    GatewayError,
    PendingUploadError,
    ValidationFailed,
)

__all__ = [
    # Descriptors
    "load_registry",
    "ResourceRegistry",
    "ResourceDescriptor",
    "FieldDescriptor",
    "ColumnDescriptor",
    "OptionEntry",
    # Gateway
    "ResourceClient",
    "AsyncCrudGateway",
    "ListPage",
    # Config
    "load_console_config",
    "ConsoleConfig",
    # Engine
    "OptionLoader",
    "UploadPipeline",
    "FormEngine",
    "SubmitResult",
    "build_payload",
    "ListController",
    "PageState",
    # Factory
    "create_console",
    "Console",
    "TokenStore",
    # Errors
    "ConsoleError",
    "GatewayError",
    "FormStateError",
    "PendingUploadError",
    "ValidationFailed",
]
