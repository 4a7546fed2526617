# tests/test_directive_parser.py

import unittest
from unittest.mock import AsyncMock
import os
import sys

# Ensure the core modules can be imported
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.capability_registry import CapabilityRegistry
from core.directive_parser import parse_directives, split_arguments


def make_registry(*tags):
    registry = CapabilityRegistry()
    for tag in tags:
        registry.register(registry.definition_for_tag(tag), AsyncMock())
    return registry


class TestDirectiveParser(unittest.TestCase):

    def setUp(self):
        self.registry = make_registry("QUERY_RATE", "MENTO_QUOTE", "GAS_PRICE")

    def test_parses_directive_with_arguments(self):
        text = "Let me check. [[MENTO_QUOTE|CELO|cUSD|10]] Done."
        directives = parse_directives(text, self.registry)
        self.assertEqual(len(directives), 1)
        d = directives[0]
        self.assertEqual(d.tag, "MENTO_QUOTE")
        self.assertEqual(d.capability_id, "mento_quote")
        self.assertEqual(d.args, ("CELO", "cUSD", "10"))
        self.assertEqual(text[d.start:d.end], d.raw)

    def test_directive_without_arguments_has_zero_args(self):
        directives = parse_directives("[[GAS_PRICE]]", self.registry)
        self.assertEqual(directives[0].args, ())

    def test_arguments_are_trimmed_and_may_be_empty(self):
        directives = parse_directives("[[MENTO_QUOTE| CELO ||  5 ]]", self.registry)
        self.assertEqual(directives[0].args, ("CELO", "", "5"))

    def test_order_is_left_to_right(self):
        text = "[[GAS_PRICE]] then [[QUERY_RATE|cEUR]] then [[MENTO_QUOTE|CELO|cUSD|1]]"
        tags = [d.tag for d in parse_directives(text, self.registry)]
        self.assertEqual(tags, ["GAS_PRICE", "QUERY_RATE", "MENTO_QUOTE"])

    def test_unknown_and_unregistered_tags_are_dropped(self):
        # MENTO_SWAP is in the catalog but has no handler in this registry
        text = "[[UNKNOWN_TAG|x]] [[MENTO_SWAP|CELO|cUSD|1]] [[QUERY_RATE|cUSD]]"
        directives = parse_directives(text, self.registry)
        self.assertEqual([d.tag for d in directives], ["QUERY_RATE"])

    def test_transfer_tags_are_never_parsed(self):
        text = "Sending now. [[SEND_CELO|0xabc|2]] [[SEND_TOKEN|cUSD|0xabc|5]]"
        self.assertEqual(parse_directives(text, self.registry), [])

    def test_malformed_directives_do_not_match(self):
        for text in ("[[QUERY_RATE|cUSD", "[QUERY_RATE]", "[[query_rate]]", "[[QUERY RATE]]", ""):
            with self.subTest(text=text):
                self.assertEqual(parse_directives(text, self.registry), [])

    def test_parsing_is_repeatable(self):
        text = "[[QUERY_RATE|cUSD]] and [[GAS_PRICE]]"
        self.assertEqual(parse_directives(text, self.registry), parse_directives(text, self.registry))

    def test_duplicate_directives_keep_distinct_spans(self):
        text = "[[GAS_PRICE]] [[GAS_PRICE]]"
        first, second = parse_directives(text, self.registry)
        self.assertEqual(first.raw, second.raw)
        self.assertLess(first.end, second.start)

    def test_split_arguments(self):
        self.assertEqual(split_arguments(None), ())
        self.assertEqual(split_arguments(""), ())
        self.assertEqual(split_arguments("a| b |c"), ("a", "b", "c"))


if __name__ == '__main__':
    unittest.main()
