from __future__ import annotations

import unittest

from analysis.relevance import RelevanceFilter, calculate_relevance_score, find_category
from fakes import broken_model, fake_model, make_item


class LexicalGateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.filter = RelevanceFilter(fake_model(), threshold=0.2)

    def test_academic_dishonesty_always_dropped(self) -> None:
        items = [
            make_item("1", "Can someone take my exam for statistics", "will pay"),
            make_item("2", "Statistics software that is not awful", "take my exam mention in body"),
            make_item("3", "Statistics software recommendations"),
        ]
        kept = self.filter.lexical_gate(items, "statistics software")
        self.assertEqual([i.id for i in kept], ["3"])

    def test_case_insensitive_meta_and_hiring(self) -> None:
        items = [
            make_item("1", "Weekly Thread: share your CRM setup"),
            make_item("2", "[Hiring] CRM consultant"),
            make_item("3", "My CRM keeps losing contacts"),
        ]
        kept = self.filter.lexical_gate(items, "crm")
        self.assertEqual([i.id for i in kept], ["3"])

    def test_category_exclusions_apply(self) -> None:
        items = [
            make_item("1", "Analytics MBA admission question"),
            make_item("2", "Product analytics tool is too expensive"),
        ]
        kept = self.filter.lexical_gate(items, "product analytics")
        self.assertEqual([i.id for i in kept], ["2"])


class RelevanceFilterTests(unittest.IsolatedAsyncioTestCase):
    async def test_semantic_gate_keeps_and_sorts_by_similarity(self) -> None:
        relevance = RelevanceFilter(fake_model(), threshold=0.3)
        items = [
            make_item("weak", "Password manager syncing problems on linux", "vault sync fails"),
            make_item("strong", "Password manager", ""),
            make_item("off", "Best hiking boots for winter", "waterproof and warm"),
        ]
        result = await relevance.filter(items, "password manager")
        self.assertTrue(result.semantic)
        self.assertEqual([i.id for i in result.items], ["strong", "weak"])
        self.assertGreater(result.similarities["strong"], result.similarities["weak"])
        self.assertNotIn("off", result.similarities)

    async def test_model_failure_falls_back_to_lexical_order(self) -> None:
        relevance = RelevanceFilter(broken_model())
        items = [
            make_item("1", "Something about cooking", "no match"),
            make_item("2", "Time tracking for freelancers", "toggl vs clockify"),
            make_item("3", "Raffle: win a free laptop"),
        ]
        with self.assertLogs("analysis.relevance", level="WARNING"):
            result = await relevance.filter(items, "time tracking")
        self.assertFalse(result.semantic)
        self.assertEqual([i.id for i in result.items], ["2", "1"])
        self.assertEqual(result.similarities, {})

    async def test_empty_after_gate_one(self) -> None:
        relevance = RelevanceFilter(fake_model())
        result = await relevance.filter([make_item("1", "do my homework please")], "homework app")
        self.assertEqual(result.items, [])


class CategoryTests(unittest.TestCase):
    def test_find_category(self) -> None:
        self.assertEqual(find_category("Note taking apps").name, "note")
        self.assertEqual(find_category("bitwarden").name, "password")
        self.assertEqual(find_category("kubernetes").name, "default")

    def test_relevance_score_components(self) -> None:
        item = make_item("1", "Email automation pains", "mailchimp is pricey for email automation")
        expansions = find_category("email automation").expansions
        # exact +5, words +2, expansions (email automation +3, mailchimp +1), title +3 +2
        self.assertEqual(calculate_relevance_score(item, "email automation", expansions), 16)


if __name__ == "__main__":
    unittest.main()
