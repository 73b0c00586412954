"""Descriptor catalog loading from TOML.

The packaged ``resources.toml`` declares the console's resources; projects
may point at their own catalog instead.
"""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from resource_console.descriptors.models import ResourceDescriptor
from resource_console.descriptors.registry import ResourceRegistry
from resource_console.errors import DescriptorError

DEFAULT_CATALOG = Path(__file__).parent / "resources.toml"


def load_registry(catalog_path: Path | None = None) -> ResourceRegistry:
    """Load a descriptor catalog into a ``ResourceRegistry``.

    Args:
        catalog_path: Path to a catalog TOML file (default: the packaged
            ``resources.toml``).

    Returns:
        ResourceRegistry with every declared resource, in file order.

    Raises:
        FileNotFoundError: If the catalog file doesn't exist.
        DescriptorError: If a resource entry is invalid.
    """
    if catalog_path is None:
        catalog_path = DEFAULT_CATALOG

    if not catalog_path.exists():
        raise FileNotFoundError(f"Resource catalog not found: {catalog_path}")

    with open(catalog_path, "rb") as f:
        data = tomllib.load(f)

    registry = ResourceRegistry()
    for index, entry in enumerate(data.get("resources", [])):
        try:
            descriptor = ResourceDescriptor.model_validate(entry)
        except ValidationError as e:
            key = entry.get("key", f"#{index}")
            raise DescriptorError(f"Invalid resource '{key}' in {catalog_path.name}:\n{e}") from e
        registry.register(descriptor)

    return registry
