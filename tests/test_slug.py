from __future__ import annotations

import unittest

from core.slug import is_valid_slug, query_to_slug


class SlugTests(unittest.TestCase):
    def test_equivalent_queries_share_a_slug(self) -> None:
        self.assertEqual(query_to_slug("Email  Automation!"), "email-automation")
        self.assertEqual(query_to_slug("email-automation"), "email-automation")

    def test_hyphens_collapsed_and_trimmed(self) -> None:
        self.assertEqual(query_to_slug("  --Note -- taking--  "), "note-taking")

    def test_only_symbols_gives_invalid_slug(self) -> None:
        slug = query_to_slug("!!!")
        self.assertEqual(slug, "")
        self.assertFalse(is_valid_slug(slug))

    def test_slug_validation(self) -> None:
        self.assertTrue(is_valid_slug("crm-for-startups"))
        self.assertFalse(is_valid_slug("Upper-Case"))
        self.assertFalse(is_valid_slug("a" * 101))


if __name__ == "__main__":
    unittest.main()
