from typing import Any, Iterable, List, Optional
import json
import structlog

logger = structlog.get_logger(__name__)


class RuleParser:
    """Normalizes stored behavior-rule configuration into a list of strings.

    Rules have been persisted in several shapes over time: a decoded list, a
    {"rules": [...]} mapping, a JSON string encoding either of those, or a
    single plain-text rule. parse() accepts all of them and never raises.
    """

    @classmethod
    def parse(cls, raw: Any) -> List[str]:
        try:
            rules = cls._normalize(raw)
        except Exception as e:
            logger.warning("Unparseable behavior rules, using raw value", error=str(e))
            rules = [str(raw)]

        return [rule.strip() for rule in rules if rule is not None and rule.strip()]

    @classmethod
    def _normalize(cls, raw: Any) -> List[str]:
        if raw is None:
            return []

        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")

        if isinstance(raw, str):
            text = raw.strip()
            if not text:
                return []
            try:
                decoded = json.loads(text)
            except ValueError:
                return [text]
            if isinstance(decoded, (list, dict)):
                rules = cls._from_structure(decoded)
                return rules if rules is not None else [text]
            if decoded is None:
                return []
            return [decoded if isinstance(decoded, str) else text]

        if isinstance(raw, (list, tuple, dict)):
            rules = cls._from_structure(raw)
            if rules is not None:
                return rules

        return [str(raw)]

    @staticmethod
    def _from_structure(value: Any) -> Optional[List[str]]:
        if isinstance(value, dict):
            value = value.get("rules")
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value if item is not None]
        return None

    @staticmethod
    def format_rules(
        rules: Iterable[str],
        header: Optional[str] = None,
        style: str = "numbered",
        separator: str = "\n"
    ) -> str:
        """Render rules as one message body; empty string when nothing is left"""

        valid = [rule.strip() for rule in rules if rule and rule.strip()]
        if not valid:
            return ""

        if style == "bulleted":
            lines = [f"- {rule}" for rule in valid]
        elif style == "plain":
            lines = valid
        else:
            lines = [f"{i}. {rule}" for i, rule in enumerate(valid, start=1)]

        body = separator.join(lines)
        return f"{header}\n{body}" if header else body

    @staticmethod
    def merge_rules(*rule_lists: Optional[Iterable[str]]) -> List[str]:
        """Flatten rule lists, drop empties and case-insensitive duplicates.

        The first spelling of a duplicated rule wins, in first-seen order.
        """

        merged: List[str] = []
        seen = set()
        for rules in rule_lists:
            for rule in rules or []:
                if not rule or not rule.strip():
                    continue
                rule = rule.strip()
                key = rule.lower()
                if key in seen:
                    continue
                seen.add(key)
                merged.append(rule)
        return merged
