"""
Content classifier for raw feed entries.

Resolves the display fields of a raw entry, cleans them to plain text and
runs the category-specific keyword heuristics that fill ``extracted_info``
and ``relevance``.

All heuristics are deterministic substring / word matches over the
lower-cased ``title + description``. Where a category has a single ``type``
the rules are checked in order and the first match wins, so the order of
each rule table is significant.
"""

import re
from datetime import datetime, timezone, timedelta
from typing import Iterable, Mapping, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .errors import ClassificationSkip
from .logging_conf import get_logger
from .models import (
    ClinicalTrialInfo,
    ExtractedInfo,
    FeedItem,
    FinancialInfo,
    MarketImpact,
    PatentInfo,
    PharmaInfo,
    RegulatoryInfo,
    Relevance,
    Severity,
)
from .sources.base import FeedCategory, FeedSource

logger = get_logger(__name__)

SENTINEL_TITLE = "No Title"
DEFAULT_LINK = "#"
DEFAULT_AUTHOR = "Unknown Author"

# Vendor field names, in resolution order
TITLE_FIELDS = ("title", "dc:title")
DESCRIPTION_FIELDS = ("description", "summary", "content:encoded")
LINK_FIELDS = ("link", "feedburner:origLink")
DATE_FIELDS = ("pubDate", "published", "updated")
AUTHOR_FIELDS = ("author", "dc:creator")

# Decoded after tag stripping, so double-escaped feed text comes out clean
_ENTITIES = (
    ("&#038;", "&"),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

_WHITESPACE_RE = re.compile(r"\s+")

# US zone abbreviations that show up in RSS pubDate strings
_TZINFOS = {
    "EST": -5 * 3600, "EDT": -4 * 3600,
    "CST": -6 * 3600, "CDT": -5 * 3600,
    "MST": -7 * 3600, "MDT": -6 * 3600,
    "PST": -8 * 3600, "PDT": -7 * 3600,
}


# =============================================================================
# Text helpers
# =============================================================================

def clean_text(text: Optional[str]) -> str:
    """
    Strip HTML tags, decode common entities and collapse whitespace.

    >>> clean_text("Pfizer &amp; Moderna")
    'Pfizer & Moderna'
    """
    if not text:
        return ""

    cleaned = text
    if "<" in cleaned or "&" in cleaned:
        cleaned = BeautifulSoup(cleaned, "lxml").get_text(separator=" ")

    for entity, char in _ENTITIES:
        cleaned = cleaned.replace(entity, char)

    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def parse_published(raw: Optional[str]) -> Optional[datetime]:
    """
    Best-effort parse of a feed date string to an aware UTC datetime.

    Returns None when the string cannot be parsed.
    """
    if not raw:
        return None
    try:
        dt = date_parser.parse(raw, tzinfos=_TZINFOS)
    except (ValueError, OverflowError, TypeError):
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _first_field(entry: Mapping[str, str], fields: Iterable[str]) -> str:
    for name in fields:
        value = entry.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _has_any(text: str, phrases: Iterable[str]) -> bool:
    return any(phrase in text for phrase in phrases)


def _words(*terms: str) -> re.Pattern:
    """Whole-word pattern for any of ``terms`` (optional plural ``s``)."""
    alternatives = "|".join(re.escape(t) for t in terms)
    return re.compile(rf"\b(?:{alternatives})s?\b")


def _matching(text: str, patterns: Mapping[str, re.Pattern]) -> tuple[str, ...]:
    """Names of every pattern found in the text, in table order."""
    return tuple(name for name, pattern in patterns.items() if pattern.search(text))


# =============================================================================
# Entity tables
# =============================================================================

COMPANY_PATTERNS = {
    "pfizer": _words("pfizer"),
    "moderna": _words("moderna"),
    "johnson & johnson": _words("johnson & johnson", "j&j"),
    "merck": _words("merck", "msd"),
    "novartis": _words("novartis"),
    "roche": _words("roche", "genentech"),
    "astrazeneca": _words("astrazeneca"),
    "sanofi": _words("sanofi"),
    "gsk": _words("gsk", "glaxosmithkline"),
    "eli lilly": _words("eli lilly", "lilly"),
    "bristol myers squibb": _words("bristol myers squibb", "bristol-myers squibb", "bms"),
    "abbvie": _words("abbvie"),
    "amgen": _words("amgen"),
    "gilead": _words("gilead"),
    "regeneron": _words("regeneron"),
    "biogen": _words("biogen"),
    "vertex": _words("vertex pharmaceuticals", "vertex"),
    "novo nordisk": _words("novo nordisk"),
    "bayer": _words("bayer"),
    "takeda": _words("takeda"),
}

DRUG_PATTERNS = {
    "vaccine": _words("vaccine"),
    "therapy": _words("therapy", "therapies"),
    "treatment": _words("treatment"),
    "drug": _words("drug"),
    "medication": _words("medication"),
    "biosimilar": _words("biosimilar"),
    "antibody": _words("antibody", "antibodies"),
    "gene therapy": _words("gene therapy"),
}

CONDITION_PATTERNS = {
    "cancer": _words("cancer", "oncology", "tumor", "tumour"),
    "diabetes": _words("diabetes", "diabetic"),
    "cardiovascular": _words("cardiovascular", "heart failure", "cardiac"),
    "neurological": _words("neurological", "alzheimer", "alzheimer's", "parkinson", "parkinson's"),
    "respiratory": _words("respiratory", "asthma", "copd"),
    "obesity": _words("obesity", "obese"),
    "infectious disease": _words("hiv", "covid-19", "covid", "influenza", "rsv"),
}

AGENCY_PATTERNS = {
    "FDA": _words("fda", "food and drug administration"),
    "EMA": _words("ema", "european medicines agency"),
    "MHRA": _words("mhra"),
    "Health Canada": _words("health canada"),
    "PMDA": _words("pmda"),
    "NMPA": _words("nmpa"),
    "TGA": _words("tga", "therapeutic goods administration"),
    "WHO": _words("world health organization"),
    "CDC": _words("cdc", "centers for disease control"),
    "FTC": _words("ftc", "federal trade commission"),
}

PATENT_TYPE_PHRASES = (
    ("utility", "utility patent"),
    ("design", "design patent"),
    ("plant", "plant patent"),
)

_PHASE_RE = re.compile(r"\bphase[\s-]*(iv|iii|ii|i|[1-4])[ab]?\b")
_ROMAN_PHASES = {"i": "1", "ii": "2", "iii": "3", "iv": "4"}


def extract_phases(text: str) -> tuple[str, ...]:
    """Trial phases mentioned in the text, e.g. ``("phase_2", "phase_3")``."""
    found = set()
    for match in _PHASE_RE.finditer(text):
        value = match.group(1)
        found.add(f"phase_{_ROMAN_PHASES.get(value, value)}")
    return tuple(sorted(found))


# =============================================================================
# Category classifiers
# =============================================================================

PHARMA_APPROVAL = ("fda approval", "approved", "approval")
PHARMA_TRIAL = ("clinical trial", "phase", "trial results")
PHARMA_MA = ("acquisition", "acquire", "merger", "buyout", "takeover")


def classify_pharma(text: str) -> PharmaInfo:
    """Pharmaceutical news: M&A, then trials, then approvals."""
    approval = _has_any(text, PHARMA_APPROVAL)

    if _has_any(text, PHARMA_MA):
        info_type = "mergers_acquisitions"
    elif _has_any(text, PHARMA_TRIAL):
        info_type = "clinical_trial"
    elif approval:
        info_type = "drug_approval"
    else:
        info_type = "general"

    return PharmaInfo(
        type=info_type,
        companies=_matching(text, COMPANY_PATTERNS),
        drugs=_matching(text, DRUG_PATTERNS),
        regulatory=approval,
        relevance=Relevance.MEDIUM if info_type == "general" else Relevance.HIGH,
    )


PATENT_LITIGATION = ("litigation", "lawsuit", "court", "infringement")
PATENT_APPLICATION = ("patent application", "filed", "applied")
PATENT_GRANT = ("patent granted", "issued", "granted")


def classify_patent(text: str) -> PatentInfo:
    """Patent news: grants, then applications, then litigation."""
    legal = _has_any(text, PATENT_LITIGATION)

    if _has_any(text, PATENT_GRANT):
        info_type = "patent_grant"
    elif _has_any(text, PATENT_APPLICATION):
        info_type = "patent_application"
    elif legal:
        info_type = "patent_litigation"
    else:
        info_type = "general"

    return PatentInfo(
        type=info_type,
        patent_types=tuple(name for name, phrase in PATENT_TYPE_PHRASES if phrase in text),
        legal=legal,
        relevance=Relevance.MEDIUM if info_type == "general" else Relevance.HIGH,
    )


# (type, trial status, severity, phrases); escalating signals first
TRIAL_RULES = (
    ("trial_failed", "failed", Severity.HIGH,
     ("failed", "fails to", "unsuccessful", "futility", "did not meet", "missed its primary endpoint")),
    ("trial_terminated", "terminated", Severity.HIGH,
     ("terminated", "terminates", "termination", "discontinued")),
    ("trial_withdrawn", "withdrawn", Severity.HIGH,
     ("withdrawn", "withdraws", "withdrew")),
    ("trial_delayed", "delayed", Severity.MEDIUM,
     ("delayed", "delays", "postponed", "paused")),
    ("trial_safety_concern", "safety_concern", Severity.HIGH,
     ("safety concern", "safety signal", "serious adverse", "adverse event", "patient death")),
    ("trial_results", "results_reported", Severity.MEDIUM,
     ("results", "topline", "top-line", "readout")),
    ("trial_completed", "completed", Severity.MEDIUM,
     ("completed", "completes", "completion")),
    ("trial_recruiting", "recruiting", Severity.MEDIUM,
     ("recruiting", "enrolling", "enrollment open")),
)


def classify_clinical_trial(text: str) -> ClinicalTrialInfo:
    """Clinical trial news; the first matching rule in TRIAL_RULES wins."""
    info_type, status, severity = "general", "unknown", Severity.MEDIUM
    for rule_type, rule_status, rule_severity, phrases in TRIAL_RULES:
        if _has_any(text, phrases):
            info_type, status, severity = rule_type, rule_status, rule_severity
            break

    phases = extract_phases(text)

    if severity is Severity.HIGH or phases or info_type != "general":
        relevance = Relevance.HIGH
    else:
        relevance = Relevance.MEDIUM

    return ClinicalTrialInfo(
        type=info_type,
        phases=phases,
        conditions=_matching(text, CONDITION_PATTERNS),
        companies=_matching(text, COMPANY_PATTERNS),
        trial_status=status,
        severity=severity,
        relevance=relevance,
    )


# (type, severity, phrases); most severe actions first
REGULATORY_RULES = (
    ("clinical_hold", Severity.CRITICAL, ("clinical hold",)),
    ("drug_recall", Severity.CRITICAL, ("recall",)),
    ("warning_letter", Severity.HIGH, ("warning letter",)),
    ("safety_alert", Severity.HIGH,
     ("safety alert", "safety communication", "boxed warning", "black box warning")),
    ("enforcement_action", Severity.HIGH,
     ("enforcement", "suspension", "injunction", "consent decree", "seizure", "import alert")),
    ("inspection_findings", Severity.HIGH,
     ("form 483", "483 observation", "inspection")),
    ("compliance_violation", Severity.MEDIUM,
     ("violation", "compliance")),
    ("regulatory_approval", Severity.MEDIUM,
     ("approval", "approved", "approves", "clearance", "authorization")),
    ("regulatory_guidance", Severity.MEDIUM,
     ("guidance", "guideline")),
)

COMPLIANCE_PHRASES = ("warning letter", "violation", "compliance", "form 483", "483 observation")


def classify_regulatory(text: str) -> RegulatoryInfo:
    """
    Regulatory news; the first matching rule in REGULATORY_RULES wins.

    Relevance follows severity unless an agency is named, which makes it high.
    """
    info_type, severity = "general", Severity.MEDIUM
    for rule_type, rule_severity, phrases in REGULATORY_RULES:
        if _has_any(text, phrases):
            info_type, severity = rule_type, rule_severity
            break

    agencies = _matching(text, AGENCY_PATTERNS)

    relevance = severity.to_relevance()
    if agencies:
        relevance = Relevance.HIGH

    return RegulatoryInfo(
        type=info_type,
        regulatory_agencies=agencies,
        compliance=_has_any(text, COMPLIANCE_PHRASES),
        companies=_matching(text, COMPANY_PATTERNS),
        severity=severity,
        relevance=relevance,
    )


FINANCIAL_ANALYST = ("upgrade", "downgrade", "analyst", "price target")
FINANCIAL_EARNINGS = ("earnings", "revenue", "profit")
FINANCIAL_MARKET = ("stock", "share price", "market")

_POSITIVE_RE = re.compile(r"\b(?:positive|upgraded?|upgrades|beats?)\b")
_NEGATIVE_RE = re.compile(r"\b(?:negative|downgraded?|downgrades|miss(?:es|ed)?)\b")


def classify_financial(text: str) -> FinancialInfo:
    """Financial news: analyst ratings, then earnings, then market moves."""
    if _has_any(text, FINANCIAL_ANALYST):
        info_type, relevance = "analyst_rating", Relevance.MEDIUM
    elif _has_any(text, FINANCIAL_EARNINGS):
        info_type, relevance = "earnings", Relevance.HIGH
    elif _has_any(text, FINANCIAL_MARKET):
        info_type, relevance = "market_news", Relevance.HIGH
    else:
        info_type, relevance = "general", Relevance.MEDIUM

    if _POSITIVE_RE.search(text):
        impact = MarketImpact.POSITIVE
    elif _NEGATIVE_RE.search(text):
        impact = MarketImpact.NEGATIVE
    else:
        impact = MarketImpact.NEUTRAL

    return FinancialInfo(type=info_type, market_impact=impact, relevance=relevance)


CLASSIFIERS = {
    FeedCategory.PHARMACEUTICAL: classify_pharma,
    FeedCategory.PATENTS: classify_patent,
    FeedCategory.CLINICAL_TRIALS: classify_clinical_trial,
    FeedCategory.REGULATORY: classify_regulatory,
    FeedCategory.FINANCIAL: classify_financial,
}


def classify_text(category: FeedCategory, title: str, description: str) -> ExtractedInfo:
    """Run the category's heuristics over cleaned title and description."""
    text = f"{title} {description}".lower()
    return CLASSIFIERS[FeedCategory.parse(category)](text)


# =============================================================================
# Entry classification
# =============================================================================

def _build_item(
    entry: Mapping[str, str],
    category: FeedCategory,
    source_name: str,
    now: datetime,
) -> FeedItem:
    title = clean_text(_first_field(entry, TITLE_FIELDS))
    if not title or title.lower() == SENTINEL_TITLE.lower():
        raise ClassificationSkip(f"entry without title from {source_name}")

    description = clean_text(_first_field(entry, DESCRIPTION_FIELDS))
    link = _first_field(entry, LINK_FIELDS) or DEFAULT_LINK
    author = clean_text(_first_field(entry, AUTHOR_FIELDS)) or DEFAULT_AUTHOR

    published_raw = _first_field(entry, DATE_FIELDS)
    if published_raw:
        published_at = parse_published(published_raw)
    else:
        published_at = now
        published_raw = now.isoformat()

    info = classify_text(category, title, description)

    return FeedItem(
        title=title,
        description=description,
        link=link,
        published_at=published_at,
        published_raw=published_raw,
        author=author,
        category=category,
        source=source_name,
        extracted_info=info,
        relevance=info.relevance or Relevance.MEDIUM,
    )


def classify_entry(
    entry: Mapping[str, str],
    category: FeedCategory,
    source_name: str,
    now: Optional[datetime] = None,
) -> Optional[FeedItem]:
    """
    Turn one raw entry into a FeedItem.

    Returns None for entries that must not be surfaced (no usable title) or
    that fail to classify.
    """
    now = now or datetime.now(timezone.utc)
    try:
        return _build_item(entry, FeedCategory.parse(category), source_name, now)
    except ClassificationSkip as e:
        logger.debug("entry_skipped", source=source_name, reason=str(e))
        return None
    except Exception as e:
        logger.warning("entry_classify_error", source=source_name, error=str(e))
        return None


_OLDEST = datetime.min.replace(tzinfo=timezone.utc) + timedelta(days=1)


def recency_key(item: FeedItem) -> tuple[bool, datetime]:
    """Sort key putting dated items newest-first and undated items last (reversed)."""
    return (item.published_at is not None, item.published_at or _OLDEST)


def classify_entries(
    entries: Iterable[Mapping[str, str]],
    source: FeedSource,
    now: Optional[datetime] = None,
) -> list[FeedItem]:
    """Classify a source's raw entries, newest first, dropping skipped ones."""
    now = now or datetime.now(timezone.utc)
    items = [
        item for item in (
            classify_entry(entry, source.category, source.name, now) for entry in entries
        )
        if item is not None
    ]
    items.sort(key=recency_key, reverse=True)
    return items
