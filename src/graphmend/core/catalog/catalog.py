# src/graphmend/core/catalog/catalog.py
"""NodeCatalog: read-only lookup tables built from a catalog file.

Loaded once and never mutated, so a single instance is shared by every
concurrent validation without locking.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

import yaml
from pydantic import ValidationError

from graphmend.contracts.enums import NodeRole
from graphmend.contracts.errors import CatalogError
from graphmend.contracts.types import PRIMARY_CHANNEL
from graphmend.core.catalog.models import CatalogDocument, NodeKind, RepairDefaults
from graphmend.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "default_catalog.yaml"


class NodeCatalog:
    """Lookup tables: type tag -> kind, channel alias -> channel.

    Unknown type tags resolve to None (the classifier degrades them to
    pass-through). Unknown channel names resolve to themselves.
    """

    def __init__(self, document: CatalogDocument) -> None:
        self._document = document
        kinds: dict[str, NodeKind] = {}
        for tag, kind in document.kinds.items():
            kinds[tag] = kind
            for alias in kind.aliases:
                kinds[alias] = kind
        self._kinds: Mapping[str, NodeKind] = MappingProxyType(kinds)

        channels: dict[str, str] = {}
        for name, spec in document.channels.items():
            channels[name] = name
            for alias in spec.aliases:
                channels[alias] = name
        self._channels: Mapping[str, str] = MappingProxyType(channels)

    @property
    def document(self) -> CatalogDocument:
        return self._document

    @property
    def repair_defaults(self) -> RepairDefaults:
        return self._document.repair

    def kinds(self) -> list[NodeKind]:
        """Catalog kinds in file order (aliases not repeated)."""
        return list(self._document.kinds.values())

    def lookup(self, type_tag: str) -> NodeKind | None:
        """Kind for a type tag or one of its aliases; None when unknown."""
        return self._kinds.get(type_tag)

    def kind(self, type_tag: str) -> NodeKind:
        """Kind for a type tag that must exist.

        Raises:
            KeyError: If the type tag is not in the catalog
        """
        kind = self.lookup(type_tag)
        if kind is None:
            raise KeyError(f"Unknown node kind: {type_tag}")
        return kind

    def canonical_channel(self, channel: str) -> str:
        """Resolve a channel alias (e.g. 'ai_languageModel') to its canonical name."""
        return self._channels.get(channel, channel)

    def is_primary(self, channel: str) -> bool:
        return self.canonical_channel(channel) == PRIMARY_CHANNEL

    def channel_names(self, channel: str) -> set[str]:
        """Every name (canonical plus aliases) that denotes ``channel``."""
        canonical = self.canonical_channel(channel)
        return {name for name, target in self._channels.items() if target == canonical} | {canonical}

    def kinds_with_role(self, role: NodeRole) -> list[NodeKind]:
        return [kind for kind in self.kinds() if kind.role == role]


def load_catalog(path: Path) -> NodeCatalog:
    """Load and validate a catalog YAML file.

    Raises:
        CatalogError: If the file is missing, is not valid YAML, or fails
            schema validation
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise CatalogError(f"Catalog file not found: {path}") from e
    except yaml.YAMLError as e:
        raise CatalogError(f"Catalog file {path.name} is not valid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise CatalogError(f"Catalog file {path.name} must contain a mapping at the top level")

    try:
        document = CatalogDocument.model_validate(raw)
    except ValidationError as e:
        details = "; ".join(f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors())
        raise CatalogError(f"Invalid catalog {path.name}: {details}") from e

    logger.debug("catalog_loaded", path=str(path), kinds=len(document.kinds))
    return NodeCatalog(document)


@functools.lru_cache(maxsize=1)
def default_catalog() -> NodeCatalog:
    """The packaged catalog, loaded once per process."""
    return load_catalog(DEFAULT_CATALOG_PATH)
