"""
Entity & Number Extraction Service.

Pulls free-text entities and typed numeric values out of a raw message so the
context engine can remember what the user referred to.

Key features:
- Quoted phrases (straight, curly and guillemet quotes)
- Titlecase proper-noun phrases with a determiner/pronoun stoplist
- Typed numbers: fee, average, credits, duration, courses
- Arabic-Indic digits and thousands separators
- Email and date entities
"""
import re
import logging
from typing import Dict, List, Any, Tuple
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"

QUOTED_PATTERNS = (
    re.compile(r'"([^"]+)"'),
    re.compile(r"“([^”]+)”"),
    re.compile(r"‘([^’]+)’"),
    re.compile(r"«([^»]+)»"),
    # Straight single quotes only at word boundaries, so apostrophes are ignored
    re.compile(r"(?:(?<=\s)|^)'([^']+)'(?=\s|$|[.,!?؟])"),
)

CAPITALIZED_PHRASE = re.compile(r"\b[A-Z][a-z0-9]+(?:[-\s]+[A-Z][a-z0-9]+)*\b")

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
DATE_PATTERN = re.compile(r"\b\d{4}-\d{2}-\d{2}\b|\b\d{1,2}/\d{1,2}/\d{2,4}\b")

# Leading words dropped from capitalized phrases.
CAPITALIZED_STOPWORDS = {
    "i", "a", "an", "the", "this", "that", "these", "those", "it", "its", "they", "them",
    "he", "she", "we", "you", "my", "your", "our", "their", "his", "her",
    "what", "how", "when", "where", "why", "who", "which", "whom",
    "is", "are", "was", "were", "do", "does", "did", "can", "could", "should", "would", "will",
    "and", "but", "so", "or", "also", "tell", "please", "hi", "hello", "thanks", "thank",
    "yes", "no", "ok", "okay", "about", "for", "in", "on", "at", "to", "of",
}

# Ordered per key; the last occurrence in the text is authoritative.
NUMBER_PATTERNS: Tuple[Tuple[str, Tuple[re.Pattern, ...]], ...] = (
    ("fee", (
        re.compile(NUMBER + r"\s*(?:NIS|ILS|JOD|JD|USD|\$|₪|شيكل|شيقل|شواكل|دينار|دنانير|دولار|dollars?|shekels?|dinars?)",
                   re.IGNORECASE),
        re.compile(r"(?:\$|₪|USD|NIS|JOD)\s*" + NUMBER, re.IGNORECASE),
    )),
    ("average", (
        re.compile(NUMBER + r"\s*(?:%|٪|percent|في\s*المئة|بالمئة|بالمية)", re.IGNORECASE),
    )),
    ("credits", (
        re.compile(r"(\d+)\s*(?:credit\s*hours?|credits?|ساعة\s*معتمدة|ساعات\s*معتمدة)", re.IGNORECASE),
    )),
    ("duration", (
        re.compile(NUMBER + r"\s*(?:years?|سنوات|سنة|سنين|أعوام|عام)", re.IGNORECASE),
    )),
    ("courses", (
        re.compile(r"(\d+)\s*(?:courses?|مساقات|مساق|مواد)", re.IGNORECASE),
    )),
)


@dataclass
class ExtractionResult:
    """Entities and typed numbers found in one message."""
    entities: List[str] = field(default_factory=list)
    numbers: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"entities": list(self.entities), "numbers": dict(self.numbers)}


def parse_number(raw: str) -> float:
    """Parse a matched numeric string, dropping thousands separators."""
    return float(raw.replace(",", ""))


def format_number(value: float) -> str:
    """Render a stored number the way a user would type it (1500, 82.5)."""
    return f"{value:g}"


class EntityExtractor:
    """
    Extracts entities and typed numbers from text.

    Stateless: extract() is a pure function over its input.
    """

    def extract(self, text: str) -> ExtractionResult:
        """
        Extract entities and numbers from a message.

        Args:
            text: Raw user message

        Returns:
            ExtractionResult with ordered, de-duplicated entities and a
            key -> value map of typed numbers
        """
        if not text or not text.strip():
            return ExtractionResult()

        entities: List[str] = []
        for entity in (
            self._extract_quoted(text)
            + self._extract_capitalized(text)
            + EMAIL_PATTERN.findall(text)
            + DATE_PATTERN.findall(text)
        ):
            if entity not in entities:
                entities.append(entity)

        return ExtractionResult(entities=entities, numbers=self._extract_numbers(text))

    def _extract_quoted(self, text: str) -> List[str]:
        found = []
        for pattern in QUOTED_PATTERNS:
            for match in pattern.finditer(text):
                phrase = match.group(1).strip()
                if len(phrase) > 1:
                    found.append(phrase)
        return found

    def _extract_capitalized(self, text: str) -> List[str]:
        found = []
        for match in CAPITALIZED_PHRASE.finditer(text):
            words = re.split(r"\s+", match.group(0).strip())
            while words and words[0].lower() in CAPITALIZED_STOPWORDS:
                words.pop(0)
            phrase = " ".join(words)
            if len(phrase) > 2:
                found.append(phrase)
        return found

    def _extract_numbers(self, text: str) -> Dict[str, float]:
        numbers: Dict[str, float] = {}
        for key, patterns in NUMBER_PATTERNS:
            last_match = None
            for pattern in patterns:
                for match in pattern.finditer(text):
                    if last_match is None or match.start() >= last_match.start():
                        last_match = match
            if last_match is None:
                continue
            try:
                numbers[key] = parse_number(last_match.group(1))
            except ValueError:
                logger.debug(f"Unparseable {key} value: {last_match.group(1)!r}")
        return numbers
