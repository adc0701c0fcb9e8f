"""
Moderation gates for incoming prompts.

The PatternModerationGate screens input against per-category regex patterns
and reports which categories were flagged. It is a lightweight stand-in for
a hosted moderation model: anything implementing IModerationGate can take
its place.
"""

import re
from typing import Dict, List, Pattern

from .agent import IModerationGate, ModerationDecision
from ..core.errors import ModerationUnavailable


class PatternModerationGate(IModerationGate):
    """
    Regex moderation over a fixed category table.

    A prompt is disallowed when any category matches; the decision reason
    lists the flagged categories and the (truncated) matching terms.
    """

    CATEGORY_PATTERNS: Dict[str, List[str]] = {
        "violence": [
            r"\b(?:how\s+to|ways\s+to|help\s+me)\s+(?:kill|murder|assassinate|torture)\s+(?:a\s+|my\s+|the\s+)?(?:person|people|someone|neighbou?r|wife|husband|boss|child)",
            r"\b(?:plan|carry\s+out)\s+(?:a\s+)?(?:mass\s+shooting|terror(?:ist)?\s+attack)",
        ],
        "weapons": [
            r"\b(?:build|make|assemble|synthesi[sz]e)\s+(?:a\s+|an\s+)?(?:pipe\s+bomb|bomb|explosive\s+device|nerve\s+agent|bioweapon|chemical\s+weapon)",
        ],
        "self_harm": [
            r"\b(?:best|easiest|painless)\s+(?:way|method)s?\s+to\s+(?:kill\s+myself|commit\s+suicide|end\s+my\s+life)",
        ],
        "sexual_minors": [
            r"\b(?:sexual|explicit|nude)\b.*\b(?:minor|child|underage)\b",
            r"\b(?:minor|child|underage)\b.*\b(?:sexual|explicit|nude)\b",
        ],
        "malware": [
            r"\b(?:write|create|build)\s+(?:a\s+)?(?:ransomware|keylogger|credential\s+stealer)",
        ],
    }

    def __init__(self, category_patterns: Dict[str, List[str]] = None):
        patterns = category_patterns if category_patterns is not None else self.CATEGORY_PATTERNS
        self._compiled: Dict[str, List[Pattern]] = {
            category: [re.compile(p, re.IGNORECASE | re.DOTALL) for p in plist]
            for category, plist in patterns.items()
        }
        self.blocked_attempts = 0
        self.checks_performed = 0

    async def check(self, text: str) -> ModerationDecision:
        if text is None:
            raise ModerationUnavailable("moderation received no input")

        self.checks_performed += 1
        flagged: Dict[str, List[str]] = {}
        for category, compiled in self._compiled.items():
            hits = []
            for pattern in compiled:
                match = pattern.search(text)
                if match:
                    hits.append(match.group(0)[:50])  # Truncate for logging
            if hits:
                flagged[category] = hits

        if flagged:
            self.blocked_attempts += 1
            return ModerationDecision(
                allowed=False,
                reason={"categories": sorted(flagged), "flagged_terms": flagged}
            )

        return ModerationDecision(allowed=True, reason=None)

    def get_stats(self) -> Dict[str, int]:
        """Get statistics about gate activity."""
        return {
            "checks_performed": self.checks_performed,
            "total_blocked": self.blocked_attempts,
            "categories": len(self._compiled),
        }


class AllowAllModerationGate(IModerationGate):
    """Used when moderation is disabled by configuration."""

    async def check(self, text: str) -> ModerationDecision:
        return ModerationDecision(allowed=True, reason="moderation_disabled")
