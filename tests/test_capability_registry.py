# tests/test_capability_registry.py

import unittest
from unittest.mock import AsyncMock, MagicMock
import os
import sys

# Ensure the core modules can be imported
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.capability_definitions import CAPABILITY_DEFINITIONS, TEMPLATE_CAPABILITIES, TRANSFER_TAGS
from core.capability_registry import CapabilityRegistry, build_capability_registry, load_handler_tables
from core.capability_types import CapabilityCategory, CapabilityDefinition
from core.errors import (
    DuplicateDirectiveTagError, RegistryIntegrityError, RegistrySealedError, UnknownCapabilityError,
)


class TestCatalog(unittest.TestCase):

    def test_ids_and_tags_are_unique(self):
        ids = [d.id for d in CAPABILITY_DEFINITIONS]
        tags = [d.tag for d in CAPABILITY_DEFINITIONS]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(len(tags), len(set(tags)))

    def test_tags_follow_directive_grammar(self):
        for definition in CAPABILITY_DEFINITIONS:
            self.assertRegex(definition.tag, r"^[A-Z_]+$")
            self.assertIn(definition.category, CapabilityCategory.ALL)

    def test_transfer_tags_are_catalogued_as_transfers(self):
        for tag in TRANSFER_TAGS:
            definition = next(d for d in CAPABILITY_DEFINITIONS if d.tag == tag)
            self.assertEqual(definition.category, CapabilityCategory.TRANSFER)
            self.assertTrue(definition.mutates_external_state)

    def test_placeholder_syntax(self):
        quote = next(d for d in CAPABILITY_DEFINITIONS if d.tag == "MENTO_QUOTE")
        self.assertTrue(quote.placeholder_syntax().startswith("[[MENTO_QUOTE|<"))
        gas = next(d for d in CAPABILITY_DEFINITIONS if d.tag == "GAS_PRICE")
        self.assertEqual(gas.placeholder_syntax(), "[[GAS_PRICE]]")


class TestCapabilityRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = CapabilityRegistry()
        self.quote = self.registry.definition_for_tag("MENTO_QUOTE")

    def test_register_and_lookup(self):
        handler = AsyncMock()
        self.registry.register(self.quote, handler)
        entry = self.registry.lookup("MENTO_QUOTE")
        self.assertIs(entry.definition, self.quote)
        self.assertIs(self.registry.get_handler("MENTO_QUOTE"), handler)
        self.assertIsNone(self.registry.lookup("GAS_PRICE"))

    def test_duplicate_registration_fails(self):
        self.registry.register(self.quote, AsyncMock())
        with self.assertRaises(DuplicateDirectiveTagError):
            self.registry.register(self.quote, AsyncMock())

    def test_transfer_tags_cannot_be_registered(self):
        with self.assertRaises(RegistryIntegrityError):
            self.registry.register(self.registry.definition_for_tag("SEND_CELO"), AsyncMock())

    def test_definitions_outside_catalog_are_rejected(self):
        rogue = CapabilityDefinition(id="rogue", name="Rogue", description="", category="data", tag="MENTO_QUOTE")
        with self.assertRaises(RegistryIntegrityError):
            self.registry.register(rogue, AsyncMock())

    def test_verify_reports_missing_handlers(self):
        with self.assertRaises(RegistryIntegrityError) as ctx:
            self.registry.seal()
        self.assertIn("MENTO_QUOTE", str(ctx.exception))
        self.assertNotIn("SEND_CELO", str(ctx.exception))

    def test_duplicate_tags_in_definitions_fail_fast(self):
        a = CapabilityDefinition(id="a", name="A", description="", category="data", tag="SAME")
        b = CapabilityDefinition(id="b", name="B", description="", category="data", tag="SAME")
        with self.assertRaises(DuplicateDirectiveTagError):
            CapabilityRegistry(definitions=[a, b], template_capabilities={"custom": ["a"]})

    def test_unknown_capability_in_template_fails_fast(self):
        with self.assertRaises(UnknownCapabilityError):
            CapabilityRegistry(template_capabilities={"custom": ["query_rate", "no_such_capability"]})

    def test_list_for_template_falls_back_to_default(self):
        custom_ids = {d.id for d in self.registry.list_for_template("custom")}
        self.assertEqual(custom_ids, set(TEMPLATE_CAPABILITIES["custom"]))
        self.assertEqual(self.registry.list_for_template("unheard-of"), self.registry.list_for_template("custom"))
        self.assertEqual(self.registry.list_for_template(None), self.registry.list_for_template("custom"))

    def test_list_for_template_keeps_catalog_order(self):
        order = [d.id for d in CAPABILITY_DEFINITIONS]
        listed = [d.id for d in self.registry.list_for_template("forex")]
        self.assertEqual(listed, sorted(listed, key=order.index))

    def test_list_by_category(self):
        transfers = self.registry.list_by_category(CapabilityCategory.TRANSFER)
        self.assertEqual({d.tag for d in transfers} & TRANSFER_TAGS, set(TRANSFER_TAGS))


class TestBuildCapabilityRegistry(unittest.TestCase):

    def test_handler_tables_cover_every_non_transfer_entry(self):
        tables = load_handler_tables()
        expected = {d.tag for d in CAPABILITY_DEFINITIONS if d.tag not in TRANSFER_TAGS}
        self.assertEqual(set(tables), expected)

    def test_built_registry_is_sealed_and_read_only(self):
        registry = build_capability_registry(MagicMock())
        self.assertTrue(registry.sealed)
        self.assertIsNotNone(registry.lookup("QUERY_RATE"))
        self.assertIsNone(registry.lookup("SEND_CELO"))
        with self.assertRaises(RegistrySealedError):
            registry.register(registry.definition_for_tag("QUERY_RATE"), AsyncMock())

    def test_sources_are_bound_into_handlers(self):
        sources = MagicMock()
        handler = AsyncMock()
        tables = {tag: AsyncMock() for tag in load_handler_tables()}
        tables["GAS_PRICE"] = handler
        registry = build_capability_registry(sources, handler_tables=tables)
        registry.get_handler("GAS_PRICE")([], "ctx")
        handler.assert_called_once_with([], "ctx", sources=sources)

    def test_handler_for_unknown_tag_fails(self):
        tables = dict(load_handler_tables())
        tables["NOT_IN_CATALOG"] = AsyncMock()
        with self.assertRaises(RegistryIntegrityError):
            build_capability_registry(MagicMock(), handler_tables=tables)


if __name__ == '__main__':
    unittest.main()
