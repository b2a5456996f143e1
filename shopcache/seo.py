"""
Listing SEO scoring.

Heuristic checks of a product's title, description and tags following Etsy's
listing guidelines. Each check yields a ``Suggestion``; the overall score
starts at 100 and loses points per suggestion by severity.
"""

import re
from collections import Counter
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any

SUBJECTIVE_WORDS = [
    'beautiful', 'perfect', 'amazing', 'stunning', 'gorgeous', 'lovely',
    'awesome', 'fantastic', 'wonderful', 'incredible', 'best', 'great',
    'excellent', 'super', 'cute', 'adorable', 'charming', 'elegant',
]

SALES_WORDS = [
    'on sale', 'free delivery', 'free shipping', 'discount', 'bargain',
    'cheap', 'deal', 'offer', 'promotion', 'limited time',
]

FILLER_WORDS = [
    'very', 'really', 'quite', 'just', 'only', 'simply', 'totally',
    'absolutely', 'completely', 'extremely', 'incredibly',
]

CRAFT_KEYWORDS = [
    'knitting', 'knitted', 'pattern', 'yarn', 'wool', 'cotton',
    'cardigan', 'sweater', 'jumper', 'hat', 'mittens', 'scarf',
    'baby', 'kids', 'child', 'adult', 'download', 'pdf', 'digital',
]

MAX_TITLE_WORDS = 15
MAX_TAGS = 13

_VARIATIONS = re.compile(r"size|color|material|custom|personali[sz]ed?", re.IGNORECASE)
_SENTENCE_END = re.compile(r"[.!?]+")

HIGH = "high"
MEDIUM = "medium"
LOW = "low"


@dataclass
class Suggestion:
    type: str
    severity: str
    issue: str
    suggestion: str


@dataclass
class SeoReport:
    """Suggestions for one product plus its score."""
    product_id: Any
    title: str
    score: int
    title_issues: List[Suggestion] = field(default_factory=list)
    description_issues: List[Suggestion] = field(default_factory=list)
    tag_issues: List[Suggestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def analyze_title(title: str) -> List[Suggestion]:
    suggestions = []
    lowered = title.lower()
    words = lowered.split()
    word_count = len(words)

    if word_count > MAX_TITLE_WORDS:
        suggestions.append(Suggestion(
            "length", HIGH,
            f"Title is {word_count} words ({word_count - MAX_TITLE_WORDS} over recommended {MAX_TITLE_WORDS} words)",
            "Reduce to under 15 words. Move extra details to tags or description.",
        ))
    elif word_count > 12:
        suggestions.append(Suggestion(
            "length", MEDIUM,
            f"Title is {word_count} words (approaching {MAX_TITLE_WORDS} word limit)",
            "Consider shortening for better readability.",
        ))

    found_subjective = [w for w in SUBJECTIVE_WORDS if w in lowered]
    if found_subjective:
        suggestions.append(Suggestion(
            "subjective", MEDIUM,
            f"Contains subjective words: {', '.join(found_subjective)}",
            "Move subjective descriptors to tags or description. Focus on factual details.",
        ))

    found_sales = [w for w in SALES_WORDS if w in lowered]
    if found_sales:
        suggestions.append(Suggestion(
            "sales", HIGH,
            f"Contains sales language: {', '.join(found_sales)}",
            "Remove all sales-related terms from titles completely.",
        ))

    found_filler = [w for w in FILLER_WORDS if w in words]
    if found_filler:
        suggestions.append(Suggestion(
            "filler", LOW,
            f"Contains filler words: {', '.join(found_filler)}",
            "Remove filler words to make title more concise and impactful.",
        ))

    if not any(keyword in lowered for keyword in CRAFT_KEYWORDS):
        suggestions.append(Suggestion(
            "clarity", HIGH,
            "Main item type is unclear",
            'Start title with what the item is (e.g., "Knitting Pattern", "Baby Cardigan", etc.)',
        ))

    frequency = Counter(w for w in words if len(w) > 3)
    repeated = [w for w, count in frequency.items() if count > 2]
    if repeated:
        suggestions.append(Suggestion(
            "repetition", MEDIUM,
            f"Repeated words: {', '.join(repeated)}",
            "Avoid repeating the same words. Use synonyms or move to tags.",
        ))

    return suggestions


def analyze_description(description: str) -> List[Suggestion]:
    if not description or not description.strip():
        return [Suggestion(
            "missing", HIGH,
            "Description is empty or missing",
            "Add a detailed description starting with what the item is.",
        )]

    suggestions = []
    lowered = description.lower()
    sentences = [s for s in _SENTENCE_END.split(description) if s.strip()]
    first_sentence = sentences[0].lower() if sentences else ""
    words = lowered.split()

    if not any(keyword in first_sentence for keyword in CRAFT_KEYWORDS):
        suggestions.append(Suggestion(
            "clarity", HIGH,
            "First sentence doesn't clearly describe the item",
            'Start description by clearly stating what the item is (e.g., "This is a knitting pattern for...")',
        ))

    if len(words) < 50:
        suggestions.append(Suggestion(
            "length", MEDIUM,
            f"Description is only {len(words)} words",
            "Expand description with details about materials, size, customization, and unique features.",
        ))

    found_keywords = [k for k in CRAFT_KEYWORDS if k in lowered]
    if len(found_keywords) < 3:
        suggestions.append(Suggestion(
            "keywords", MEDIUM,
            f"Only {len(found_keywords)} relevant keywords found",
            "Include more relevant keywords naturally throughout the description.",
        ))

    if not _VARIATIONS.search(description):
        suggestions.append(Suggestion(
            "variations", LOW,
            "No mention of variations or customization options",
            "Include information about available sizes, colors, materials, or personalization options.",
        ))

    return suggestions


def analyze_tags(tags: List[str]) -> List[Suggestion]:
    if not tags:
        return [Suggestion(
            "missing", HIGH,
            "No tags found",
            f"Add up to {MAX_TAGS} relevant tags with keywords buyers might search for.",
        )]

    suggestions = []
    if len(tags) < 10:
        suggestions.append(Suggestion(
            "count", MEDIUM,
            f"Only {len(tags)} tags used (out of {MAX_TAGS} allowed)",
            "Add more tags to maximize discoverability. Use long-tail keywords.",
        ))

    multi_word = [t for t in tags if " " in t]
    single_word = [t for t in tags if " " not in t]
    if len(multi_word) < len(single_word) / 2:
        suggestions.append(Suggestion(
            "diversity", MEDIUM,
            "Not enough multi-word (long-tail) tags",
            'Include more specific phrases like "knitting pattern for beginners" rather than just "knitting".',
        ))

    return suggestions


def overall_score(*groups: List[Suggestion]) -> int:
    """100 minus 20 per high, 10 per medium and 5 per other suggestion, floored at 0."""
    suggestions = [s for group in groups for s in group]
    high = sum(1 for s in suggestions if s.severity == HIGH)
    medium = sum(1 for s in suggestions if s.severity == MEDIUM)
    other = len(suggestions) - high - medium
    return max(0, 100 - high * 20 - medium * 10 - other * 5)


def analyze_product(product: Dict[str, Any]) -> SeoReport:
    """
    Score a cached product document.

    Args:
        product: Product JSON (``title``, ``description``, ``tags``)

    Returns:
        SeoReport
    """
    title = product.get("title") or ""
    title_issues = analyze_title(title)
    description_issues = analyze_description(product.get("description") or "")
    tag_issues = analyze_tags(product.get("tags") or [])

    return SeoReport(
        product_id=product.get("id"),
        title=title,
        score=overall_score(title_issues, description_issues, tag_issues),
        title_issues=title_issues,
        description_issues=description_issues,
        tag_issues=tag_issues,
    )
