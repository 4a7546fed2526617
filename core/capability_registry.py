# core/capability_registry.py

"""
Capability Registry

Binds each catalog entry to its handler by directive tag. The table is built
once at startup by build_capability_registry(), integrity-checked and sealed;
after that it is a read-only mapping shared by every request.
"""
import functools
import importlib
import os
from collections import namedtuple
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Optional
import config
from core.capability_definitions import CAPABILITY_DEFINITIONS, TEMPLATE_CAPABILITIES, TRANSFER_TAGS
from core.capability_types import CapabilityDefinition
from core.errors import (
    DuplicateDirectiveTagError, RegistryIntegrityError, RegistrySealedError, UnknownCapabilityError,
)
from utils.logger import log

RegisteredCapability = namedtuple("RegisteredCapability", ["definition", "handler"])

HANDLER_PACKAGE = "capability_handlers"


class CapabilityRegistry:

    def __init__(self,
                 definitions: Iterable[CapabilityDefinition] = CAPABILITY_DEFINITIONS,
                 template_capabilities: Optional[Dict[str, List[str]]] = None,
                 default_template: str = config.DEFAULT_TEMPLATE):
        self._definitions = tuple(definitions)
        self._by_id = {}
        self._by_tag = {}
        for definition in self._definitions:
            if definition.id in self._by_id:
                raise RegistryIntegrityError(f"Duplicate capability id '{definition.id}'")
            if definition.tag in self._by_tag:
                raise DuplicateDirectiveTagError(f"Directive tag '{definition.tag}' is declared twice")
            self._by_id[definition.id] = definition
            self._by_tag[definition.tag] = definition

        templates = TEMPLATE_CAPABILITIES if template_capabilities is None else template_capabilities
        self._templates = self._validate_templates(templates)
        if default_template not in self._templates:
            raise UnknownCapabilityError(f"Default template '{default_template}' has no allow-list")
        self._default_template = default_template

        self._entries: Dict[str, RegisteredCapability] = {}
        self._sealed = False

    def _validate_templates(self, templates: Dict[str, List[str]]) -> Dict[str, tuple]:
        validated = {}
        for template_id, capability_ids in templates.items():
            unknown = [cid for cid in capability_ids if cid not in self._by_id]
            if unknown:
                raise UnknownCapabilityError(f"Template '{template_id}' lists unknown capabilities: {unknown}")
            validated[template_id] = tuple(capability_ids)
        return validated

    # --- Registration (startup only) ---

    def register(self, definition: CapabilityDefinition, handler: Callable) -> None:
        if self._sealed:
            raise RegistrySealedError(f"Cannot register '{definition.tag}' after startup")
        if definition.tag in TRANSFER_TAGS:
            raise RegistryIntegrityError(f"'{definition.tag}' is reserved for the transfer path")
        if self._by_tag.get(definition.tag) is not definition:
            raise RegistryIntegrityError(f"'{definition.tag}' is not a catalog entry")
        if definition.tag in self._entries:
            raise DuplicateDirectiveTagError(f"Handler for '{definition.tag}' registered twice")
        self._entries[definition.tag] = RegisteredCapability(definition, handler)
        log(f"[CapabilityRegistry] Registered handler for {definition.tag} -> {definition.id}", level="DEBUG")

    def verify(self) -> None:
        """Every non-transfer catalog entry must have exactly one handler."""
        missing = [d.tag for d in self._definitions if d.tag not in TRANSFER_TAGS and d.tag not in self._entries]
        if missing:
            raise RegistryIntegrityError(f"Catalog entries without a handler: {missing}")

    def seal(self) -> "CapabilityRegistry":
        self.verify()
        self._entries = MappingProxyType(dict(self._entries))
        self._sealed = True
        log(f"[CapabilityRegistry] Sealed with {len(self._entries)} capabilities.", level="INFO")
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    # --- Lookup ---

    def lookup(self, tag: str) -> Optional[RegisteredCapability]:
        return self._entries.get(tag)

    def get_handler(self, tag: str) -> Optional[Callable]:
        entry = self._entries.get(tag)
        return entry.handler if entry else None

    def definition_for_tag(self, tag: str) -> Optional[CapabilityDefinition]:
        return self._by_tag.get(tag)

    def list_all(self) -> List[CapabilityDefinition]:
        return list(self._definitions)

    def list_by_category(self, category: str) -> List[CapabilityDefinition]:
        return [d for d in self._definitions if d.category == category]

    def list_for_template(self, template_id: Optional[str]) -> List[CapabilityDefinition]:
        """Allow-listed definitions in catalog order. Unknown templates fall back to the default set."""
        allowed = self._templates.get(template_id) if template_id else None
        if allowed is None:
            allowed = self._templates[self._default_template]
        allowed = set(allowed)
        return [d for d in self._definitions if d.id in allowed]


def load_handler_tables(package: str = HANDLER_PACKAGE) -> Dict[str, Callable]:
    """
    Imports every module in the handler package and merges their HANDLERS tables.
    A tag exported by two modules is an integrity error.
    """
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    handlers_dir = os.path.join(project_root, package)
    log(f"[CapabilityRegistry] Loading handler modules from: {handlers_dir}", level="DEBUG")

    merged: Dict[str, Callable] = {}
    for filename in sorted(os.listdir(handlers_dir)):
        if not filename.endswith(".py") or filename.startswith("_"):
            continue
        module = importlib.import_module(f"{package}.{filename[:-3]}")
        table = getattr(module, "HANDLERS", None)
        if not table:
            continue
        for tag, fn in table.items():
            if tag in merged:
                raise DuplicateDirectiveTagError(f"Tag '{tag}' exported by more than one handler module")
            merged[tag] = fn
    return merged


def build_capability_registry(sources, handler_tables: Optional[Dict[str, Callable]] = None,
                              **registry_kwargs) -> CapabilityRegistry:
    """
    Builds the process-wide registry: binds `sources` into each handler so the
    registered callable is `(args, context) -> Outcome`, then verifies and seals.
    """
    tables = load_handler_tables() if handler_tables is None else handler_tables
    registry = CapabilityRegistry(**registry_kwargs)

    unknown = [tag for tag in tables if registry.definition_for_tag(tag) is None]
    if unknown:
        raise RegistryIntegrityError(f"Handlers for tags not in the catalog: {unknown}")

    for definition in registry.list_all():
        if definition.tag in TRANSFER_TAGS:
            continue
        handler = tables.get(definition.tag)
        if handler is None:
            continue # verify() reports every missing tag at once
        registry.register(definition, functools.partial(handler, sources=sources))
    return registry.seal()
