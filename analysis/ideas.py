"""Template-based product ideas derived from the top themes."""

from __future__ import annotations

import re
from collections.abc import Sequence

from core.models import BuildIdea, Theme

MAX_IDEAS = 4

_ALTERNATIVE_RE = re.compile(r"alternative\s+to\s+(\w+)")
_LOOKING_FOR_RE = re.compile(r"looking\s+for\s+(?:a\s+)?(\w+)")
_PROBLEM_RE = re.compile(r"(?:problem|issue)\s+with\s+(\w+)")


def _cap(word: str) -> str:
    return word[:1].upper() + word[1:]


def _idea_for_theme(title: str, query: str) -> BuildIdea:
    q = _cap(query)

    if "alternative" in title:
        match = _ALTERNATIVE_RE.search(title)
        product = _cap(match.group(1)) if match else q
        return BuildIdea(
            name=f"Open{product}",
            value_prop=f"Open-source, self-hosted alternative to {product} with no vendor lock-in",
            target_user=f"Developers and teams frustrated with {product}'s pricing or limitations",
        )
    if "looking for" in title:
        match = _LOOKING_FOR_RE.search(title)
        thing = match.group(1) if match else "solution"
        return BuildIdea(
            name=f"{_cap(thing)}Hub",
            value_prop=f"The {thing} people are actually looking for: simple, focused, no bloat",
            target_user=f"Users who can't find a good {thing} in the {q} space",
        )
    if "problem" in title or "issue" in title:
        match = _PROBLEM_RE.search(title)
        problem = match.group(1) if match else q
        return BuildIdea(
            name=f"{_cap(problem)}Fixer",
            value_prop=f"One-click solution for the most common {problem} problems",
            target_user=f"Non-technical users struggling with {problem} issues",
        )
    if "frustrated" in title or "hate" in title:
        return BuildIdea(
            name=f"Calm{q}",
            value_prop=f"{q} tool designed to reduce friction, not add it",
            target_user=f"Users burned out by existing {q} solutions",
        )
    return BuildIdea(
        name=f"{q}Pilot",
        value_prop=f"Smart {q} assistant that handles the tedious parts automatically",
        target_user=f"Busy professionals who want {q} to just work",
    )


def generate_build_ideas(themes: Sequence[Theme], query: str) -> list[BuildIdea]:
    query = query.strip()
    q = _cap(query)
    ideas = [_idea_for_theme(theme.title.lower(), query) for theme in themes[:3]]

    if len(ideas) < MAX_IDEAS:
        ideas.append(
            BuildIdea(
                name=f"{q}Lite",
                value_prop=f"The simplest possible {query.lower()} tool: does one thing, does it well",
                target_user="Minimalists who hate bloated software with features they'll never use",
            )
        )
    if len(ideas) < MAX_IDEAS:
        ideas.append(
            BuildIdea(
                name=f"{q}Compare",
                value_prop=f"Side-by-side comparison of {query.lower()} solutions with real user reviews",
                target_user=f"People researching {query.lower()} options before committing",
            )
        )

    seen: set[str] = set()
    unique = []
    for idea in ideas:
        key = idea.name.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(idea)
    return unique[:MAX_IDEAS]
