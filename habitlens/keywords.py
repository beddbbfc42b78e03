"""Keyword configuration — categories and synonym rules for habit labels.

Label matching is a lower-case substring test. The engine receives a
KeywordConfig explicitly; KeywordConfig.from_config() builds the default
one from habitlens.config.
"""

from dataclasses import dataclass, field


def matches_any(label: str, keywords: tuple[str, ...]) -> bool:
    lbl = label.lower()
    return any(k in lbl for k in keywords)


@dataclass(frozen=True)
class SynonymRule:
    """Substitutable habits collapse into one requirement.

    A core habit whose label matches `requirement` is satisfied when it is
    checked, or when any checked habit that day matches `satisfied_by`.
    """
    name: str
    requirement: tuple[str, ...]
    satisfied_by: tuple[str, ...]

    def applies_to(self, label: str) -> bool:
        return matches_any(label, self.requirement)

    def is_satisfier(self, label: str) -> bool:
        return matches_any(label, self.satisfied_by)


@dataclass(frozen=True)
class KeywordConfig:
    categories: dict[str, tuple[str, ...]] = field(default_factory=dict)
    synonyms: tuple[SynonymRule, ...] = ()

    def rule_for(self, label: str) -> SynonymRule | None:
        for rule in self.synonyms:
            if rule.applies_to(label):
                return rule
        return None

    @classmethod
    def from_config(cls) -> "KeywordConfig":
        from habitlens import config

        return cls(
            categories={k: tuple(v) for k, v in config.CATEGORY_KEYWORDS.items()},
            synonyms=(
                SynonymRule(
                    name="workout",
                    requirement=config.WORKOUT_ALIASES,
                    satisfied_by=config.WORKOUT_SATISFIERS,
                ),
            ),
        )
