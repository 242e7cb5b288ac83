from __future__ import annotations

import unittest

from analysis.ideas import generate_build_ideas
from core.models import Theme


def theme(title: str) -> Theme:
    return Theme(title=title, share=10, quotes=[], sources=[])


class BuildIdeasTest(unittest.TestCase):
    def test_templates_by_theme_pattern(self):
        ideas = generate_build_ideas(
            [theme("Alternative To Trello"), theme("Problem With Sync"), theme("Hate Jira")],
            "crm",
        )
        self.assertEqual([i.name for i in ideas], ["OpenTrello", "SyncFixer", "CalmCrm", "CrmLite"])

    def test_looking_for_and_generic(self):
        ideas = generate_build_ideas([theme("Looking For A Planner"), theme("Pricing & Cost")], "notes")
        self.assertEqual([i.name for i in ideas], ["PlannerHub", "NotesPilot", "NotesLite", "NotesCompare"])

    def test_no_themes(self):
        ideas = generate_build_ideas([], "crm")
        self.assertEqual([i.name for i in ideas], ["CrmLite", "CrmCompare"])

    def test_duplicate_names_collapse(self):
        ideas = generate_build_ideas(
            [theme("Alternative To Trello"), theme("Alternative To Trello Boards")], "crm"
        )
        self.assertEqual([i.name for i in ideas], ["OpenTrello", "CrmLite", "CrmCompare"])
