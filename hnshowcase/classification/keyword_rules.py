"""Deterministic keyword classification.

Rules are evaluated top to bottom and the first category with any keyword
found in the record text wins. Rule order is a ranking policy: a record that
mentions both "dashboard" and "ai" lands in whichever category comes first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from hnshowcase.ingestion.record_types import ShowcaseRecord

OTHER_CATEGORY = "Other"


@dataclass(frozen=True)
class KeywordRule:
    category: str
    keywords: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(kw in text for kw in self.keywords)


def rule(category: str, keywords: Sequence[str]) -> KeywordRule:
    return KeywordRule(category=category, keywords=tuple(k.lower() for k in keywords))


def default_keyword_rules() -> List[KeywordRule]:
    """Stock category table, in priority order."""
    return [
        rule("Data Visualization & Dashboards", [
            "dashboard", "monitor", "geopolitical", "budget", "visualize", "map", "citi bike", "stock",
            "portfolio", "13f", "yacht", "tco", "analytics", "charts", "plotting", "d3", "grafana",
            "kibana", "graph", "visualization",
        ]),
        rule("Education & Philosophy", [
            "philosophy", "course", "learn", "education", "research", "academy", "tutorial",
            "documentation", "book", "reading", "school", "university", "history",
        ]),
        rule("Games & Entertainment", [
            "game", "minesweeper", "geoguess", "word search", "mario party", "robot", "piano", "musical",
            "ear training", "tiktok", "wikipedia", "rocket", "simulator", "batte", "music", "video", "stream",
            "audio", "puzzle", "rpg", "fps", "unity", "unreal",
        ]),
        rule("Productivity & Browser Extensions", [
            "chrome extension", "saas tracker", "subscription", "browser history", "new tab",
            "spreadsheet", "usage tracker", "calendar", "todo", "notes", "productivity", "organizer",
            "automation", "slack", "discord", "email", "crm",
        ]),
        rule("Web3 & Blockchain", [
            "blockchain", "equity", "solana", "tokenized", "securities", "auction", "crypto", "nft",
            "ethereum", "bitcoin", "web3", "dao", "defi",
        ]),
        rule("Design & Creative Tools", [
            "design", "figma", "svg", "canvas", "image editor", "photo", "icon", "font", "css",
            "tailwind", "ui", "ux", "animation", "3d", "modeling",
        ]),
        rule("Privacy & Security", [
            "privacy", "security", "encryption", "vpn", "firewall", "auth", "authentication",
            "password", "hacking", "osint", "forensics", "audit",
        ]),
        rule("Developer Tools & Frameworks", [
            "github", "debug", "debugger", "terminal", "cli", "programming language", "framework",
            "rust", "zig", "go", "git", "pr", "distributed", "consensus", "proxy", "unzip",
            "text editor", "markdown", "tmux", "api", "backend", "frontend", "database", "docker",
            "kubernetes", "compiler", "interpreter", "npm", "pip", "cargo",
        ]),
        rule("AI & LLM Tools", [
            "ai", "llm", "claude", "gpt", "agent", "chatbot", "natural language", "video generator",
            "poker", "machine learning", "deep learning", "openai", "anthropic", "stable diffusion",
            "midjourney", "transformer",
        ]),
    ]


def record_text(record: ShowcaseRecord) -> str:
    md = record.metadata
    parts = [record.title or "", (md.title if md else None) or "", (md.description if md else None) or ""]
    return " ".join(parts).lower()


class KeywordClassifier:
    def __init__(self, rules: Sequence[KeywordRule], *, fallback: str = OTHER_CATEGORY):
        rules = list(rules)
        for r in rules:
            if r.category.strip().lower() == fallback.lower():
                raise ValueError(f"'{fallback}' is the fallback bucket and cannot be a keyword rule")
            if not r.keywords or not all(r.keywords):
                raise ValueError(f"Rule '{r.category}' has no usable keywords")
        self.rules = rules
        self.fallback = fallback

    @property
    def categories(self) -> List[str]:
        return [r.category for r in self.rules] + [self.fallback]

    def category_for(self, record: ShowcaseRecord) -> str:
        text = record_text(record)
        for r in self.rules:
            if r.matches(text):
                return r.category
        return self.fallback

    def classify(self, records: Sequence[ShowcaseRecord]) -> List[ShowcaseRecord]:
        return [rec.with_category(self.category_for(rec)) for rec in records]
