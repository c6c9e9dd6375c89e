"""
modules/planning/keyword_tables.py
-----------------------------------
Every heuristic keyword table used by the planner, in one place.

Each concern has exactly one table: category filtering, attraction
overrides, outdoor/indoor classification, minimum visit durations, cost
post-fixes, profile tags for group-context scoring, cuisine suitability per
meal, and day themes. Matching is lower-case substring unless a table holds
compiled regexes.

Tables are tuples / frozen mappings so no stage can mutate them at runtime.
"""

from __future__ import annotations

import re
import unicodedata
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


def normalize_text(text: str) -> str:
    """Lower-case and strip accents ("Musée" → "musee")."""
    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn").lower()


def normalize_name(name: str) -> str:
    """Accent-free alphanumerics only; used for cross-source name matching."""
    return re.sub(r"[^a-z0-9]", "", normalize_text(name))


def matches_any(text: str, keywords: Iterable[str]) -> bool:
    t = text.lower()
    return any(k in t for k in keywords)


# ── Category filter ───────────────────────────────────────────────────────────

# Provider types that are never sightseeing targets on their own.
DISALLOWED_TYPES: tuple[str, ...] = (
    "restaurant", "cafe", "bar", "pub", "nightclub", "meal_takeaway",
    "cinema", "movie_theater", "gym", "fitness",
    "hospital", "clinic", "pharmacy", "dentist",
    "bank", "atm", "post_office",
    "car_rental", "gas_station", "parking",
    "supermarket", "grocery", "convenience_store",
    "hotel", "hostel", "motel", "lodging",
    "airport", "train_station", "bus_station", "transit_station", "subway_station",
    "route", "street_address", "intersection",
)

# Name prefixes of generic streets / squares / roads.
GENERIC_PLACE_PREFIXES: tuple[str, ...] = (
    "rue ", "avenue ", "boulevard ", "street ", "road ", "calle ", "via ",
    "place ", "square ", "plaza ", "piazza ", "allee ", "chemin ", "quai ",
)

# Brand names and tourist traps, removed whatever their type.
BLOCKED_NAMES: tuple[str, ...] = (
    "madame tussaud", "selfie museum", "escape room",
    "hard rock cafe", "starbucks", "mcdonalds", "mcdonald",
    "burger king", "kfc", "subway",
)

# A name containing one of these survives the type / generic-name filter.
ATTRACTION_KEYWORDS: tuple[str, ...] = (
    "museum", "musee", "museo", "gallery", "galerie",
    "cathedral", "cathedrale", "basilica", "basilique", "church", "eglise", "chapel",
    "palace", "palais", "palazzo", "castle", "chateau", "fort",
    "tower", "tour ", "monument", "memorial", "statue", "fountain", "fontaine",
    "arc de", "arch", "bridge", "pont ", "opera", "theatre", "theater",
    "garden", "jardin", "park", "parc", "zoo", "aquarium",
    "market", "marche", "viewpoint", "belvedere", "temple", "mosque", "synagogue",
    "trocadero", "historic",
)

_ATTRACTION_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(k.strip()) for k in ATTRACTION_KEYWORDS) + r")s?\b"
)


def has_attraction_keyword(text: str) -> bool:
    """Whole-word match, so "Parking" does not count as a park."""
    return _ATTRACTION_PATTERN.search(normalize_text(text)) is not None


# ── Scoring ───────────────────────────────────────────────────────────────────

# ActivityType preference → provider category keywords that count as a match.
TYPE_MATCH_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "culture":    ("museum", "gallery", "monument", "historic", "church", "palace",
                   "castle", "temple", "cultural"),
    "nature":     ("park", "garden", "nature", "viewpoint", "mountain", "lake", "beach", "trail"),
    "adventure":  ("adventure", "sport", "outdoor", "hiking", "diving", "climbing"),
    "shopping":   ("market", "shopping", "bazaar", "souk"),
    "gastronomy": ("food_tour", "cooking_class", "wine", "tasting"),
    "nightlife":  ("nightlife", "club", "bar", "show", "entertainment"),
    "wellness":   ("spa", "hammam", "wellness", "yoga", "thermal"),
    "beach":      ("beach", "coast", "seaside", "water_park"),
})

EXPERIENTIAL_KEYWORDS: tuple[str, ...] = (
    "cruise", "croisiere", "tour", "visite guidee",
    "food", "cooking", "tasting", "degustation", "bike", "velo",
    "boat", "bateau", "canal", "workshop", "atelier",
)

PROFILE_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "kid_friendly": ("kids", "children", "family", "playground", "interactive", "fun",
                     "aquarium", "zoo", "theme park", "amusement", "legoland", "trampoline",
                     "science center"),
    "romantic":     ("cruise", "croisiere", "sunset", "candlelight", "wine", "rooftop",
                     "spa", "hammam", "gondola", "romantic"),
    "party":        ("pub crawl", "bar crawl", "nightlife", "club", "party", "karaoke",
                     "cocktail", "beer", "brewery", "bar hop"),
    "adult_only":   ("red light", "coffeeshop", "cannabis", "sex museum", "erotic", "strip"),
    "instagram":    ("selfie", "instagram", "instagrammable", "immersive", "experience museum",
                     "upside down", "illusions", "pop-up"),
    "deep_culture": ("museum", "musee", "gallery", "galerie", "archaeological", "heritage",
                     "historical", "monument", "cathedral", "basilica", "palace", "palais",
                     "castle", "chateau"),
    "active":       ("bike", "velo", "cycling", "hike", "randonnee", "kayak", "climbing",
                     "surfing", "diving", "segway", "zip line"),
    "relaxing":     ("spa", "hammam", "wellness", "massage", "yoga", "garden", "jardin",
                     "botanical", "park", "beach", "plage"),
    "foodie":       ("food tour", "cooking class", "tasting", "degustation", "gastro",
                     "culinary", "street food", "market tour"),
})

# group type × profile tag → bonus / penalty
CONTEXT_FIT_MATRIX: Mapping[str, Mapping[str, int]] = MappingProxyType({
    "family_with_kids": {
        "kid_friendly": 5, "romantic": -3, "party": -5, "adult_only": -6,
        "instagram": 2, "deep_culture": -1, "active": 2, "relaxing": 2, "foodie": 0,
    },
    "couple": {
        "kid_friendly": -2, "romantic": 5, "party": 0, "adult_only": 0,
        "instagram": -2, "deep_culture": 2, "active": 2, "relaxing": 3, "foodie": 3,
    },
    "friends": {
        "kid_friendly": -3, "romantic": -2, "party": 5, "adult_only": 2,
        "instagram": 2, "deep_culture": 0, "active": 3, "relaxing": 0, "foodie": 3,
    },
    "solo": {
        "kid_friendly": -2, "romantic": -3, "party": 0, "adult_only": 0,
        "instagram": 0, "deep_culture": 3, "active": 2, "relaxing": 2, "foodie": 2,
    },
    "family_without_kids": {
        "kid_friendly": 0, "romantic": 2, "party": -2, "adult_only": -5,
        "instagram": 0, "deep_culture": 3, "active": 2, "relaxing": 2, "foodie": 3,
    },
})

PREFERENCE_AFFINITIES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "culture":    ("deep_culture",),
    "nature":     ("relaxing", "active"),
    "nightlife":  ("party",),
    "gastronomy": ("foodie",),
    "wellness":   ("relaxing",),
    "adventure":  ("active",),
})

PREFERENCE_CONFLICTS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "culture":   ("instagram", "party"),
    "nature":    ("instagram", "party"),
    "adventure": ("relaxing", "instagram"),
    "nightlife": ("kid_friendly",),
})

# ── Outdoor / indoor ──────────────────────────────────────────────────────────

OUTDOOR_KEYWORDS: tuple[str, ...] = (
    "park", "parc", "tuin", "garden", "jardin", "botanical", "botanique",
    "viewpoint", "belvedere", "mirador", "cemetery", "cimetiere", "zoo",
    "beach", "plage", "playa", "spiaggia", "trail", "randonnee", "sentier",
    "promenade", "square", "place", "plaza", "piazza",
)

INDOOR_KEYWORDS: tuple[str, ...] = (
    "museum", "musee", "museo", "gallery", "galerie", "galleria",
    "church", "eglise", "chiesa", "cathedral", "cathedrale", "basilica", "basilique",
    "mosque", "mosquee", "synagogue", "temple",
    "theater", "theatre", "teatro", "opera", "cinema",
    "aquarium", "planetarium", "palace", "palais", "palazzo", "castle", "chateau",
    "library", "bibliotheque", "mall", "shopping", "spa", "hammam", "wellness",
    "station", "gare", "restaurant", "bar", "club", "pub",
    "show", "spectacle", "concert", "casino", "bowling",
)

OUTDOOR_ACTIVITY_TYPES: tuple[str, ...] = ("nature", "beach", "adventure")
INDOOR_ACTIVITY_TYPES: tuple[str, ...] = ("culture", "shopping", "wellness", "nightlife")


def classify_outdoor(name: str, description: str = "", category: str = "") -> Optional[bool]:
    """True = outdoor, False = indoor, None = unknown.

    A text matching both lists counts as outdoor ("Jardin du musée").
    """
    text = normalize_text(f"{name} {description} {category}")
    outdoor = matches_any(text, OUTDOOR_KEYWORDS)
    indoor = matches_any(text, INDOOR_KEYWORDS)
    if outdoor:
        return True
    if indoor:
        return False
    cat = (category or "").lower()
    if cat in OUTDOOR_ACTIVITY_TYPES:
        return True
    if cat in INDOOR_ACTIVITY_TYPES:
        return False
    return None


# ── Minimum visit durations ───────────────────────────────────────────────────

# First match wins; most specific first. Tested against normalized "name category".
MIN_DURATION_RULES: tuple[tuple[re.Pattern, int], ...] = (
    (re.compile(r"\b(vatican|vaticano|sistine|chapelle sixtine)\b"), 180),
    (re.compile(r"\b(louvre)\b"), 150),
    (re.compile(r"\b(british museum|uffizi|prado|rijksmuseum|hermitage|ermitage|metropolitan)\b"), 120),
    (re.compile(r"\b(orsay|colosseum|colosseo|colisee|coliseum)\b"), 90),
    (re.compile(r"\b(museum|muse[eo]|gallery|galerie|galleria|cathedral|cathedrale|basilica|basilique)\b"), 60),
    (re.compile(r"\b(palace|palais|palazzo|castle|chateau|fort|fortress|forteresse)\b"), 45),
    (re.compile(r"\b(park|parc|garden|jardin|botanical|botanique|zoo|aquarium)\b"), 30),
    (re.compile(r"\b(church|eglise|chiesa|mosque|mosquee|temple|synagogue|chapel|chapelle)\b"), 20),
    (re.compile(r"\b(monument|statue|viewpoint|belvedere|mirador|tower|tour|torre)\b"), 15),
)


def min_duration_for(name: str, category: str, default: int = 30) -> int:
    text = normalize_text(f"{name} {category}")
    for pattern, minutes in MIN_DURATION_RULES:
        if pattern.search(text):
            return minutes
    return default


# ── Cost post-fix ─────────────────────────────────────────────────────────────

FREE_VENUE_KEYWORDS: tuple[str, ...] = (
    "park", "parc", "garden", "jardin", "square", "plaza", "piazza", "place ",
    "church", "eglise", "chiesa", "cathedral", "cathedrale", "basilica", "basilique",
    "viewpoint", "belvedere", "mirador", "statue", "fountain", "fontaine",
    "memorial", "bridge", "pont ", "beach", "plage", "promenade",
)

# A free-venue keyword does not apply when one of these is also present.
PAID_VENUE_KEYWORDS: tuple[str, ...] = (
    "museum", "musee", "museo", "gallery", "galerie", "zoo", "aquarium", "tower",
    "tour", "cruise", "palace", "palais", "castle", "chateau", "theme park", "amusement",
)

STREET_FOOD_KEYWORDS: tuple[str, ...] = (
    "street food", "food stall", "food truck", "food market", "hawker",
)

# ── Meal suitability ──────────────────────────────────────────────────────────

MEAL_EXCLUDED_CUISINES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "breakfast": (
        "steakhouse", "steak", "grill", "bbq", "barbecue",
        "sushi", "ramen", "chinese", "indian", "thai", "korean",
        "mexican", "tapas", "fondue", "raclette",
        "seafood", "fish", "fruits de mer", "poisson",
        "pub", "cocktail", "wine bar", "nightclub", "disco",
        "fast food", "burger", "pizza", "kebab", "shawarma",
        "nepali", "nepalese", "asian", "asiatique", "vietnamese", "japanese",
        "indonesian", "malaysian", "tibetan", "sri lankan",
    ),
    "lunch": (
        "nightclub", "disco", "cocktail", "wine bar",
    ),
    "dinner": (
        "bakery", "boulangerie", "patisserie", "breakfast", "brunch",
        "coffee", "tea room", "salon de the", "ice cream", "gelato", "juice", "donut",
    ),
})

BREAKFAST_FRIENDLY_KEYWORDS: tuple[str, ...] = (
    "cafe", "bakery", "boulangerie", "patisserie", "brunch", "breakfast",
    "petit-dejeuner", "coffee", "tea room", "tea house", "salon de the", "croissant", "pancake", "deli",
)

# Cuisine tags treated as locally authentic when the traveler names none.
LOCAL_CUISINE_MARKERS: tuple[str, ...] = ("local", "traditional", "regional", "authentic")

# Restaurant price tier (1–4) targeted by each budget level.
BUDGET_PRICE_LEVEL: Mapping[str, int] = MappingProxyType({
    "economic": 1,
    "moderate": 2,
    "comfort": 3,
    "luxury": 4,
})

# ── Day themes (deterministic theming) ────────────────────────────────────────

THEME_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("museum", "gallery"), "Culture & Museums"),
    (("park", "garden", "nature"), "Nature & Gardens"),
    (("market", "souk", "bazaar"), "Markets & Shopping"),
    (("palace", "castle", "historic"), "History & Heritage"),
    (("religious", "mosque", "church"), "Spirituality & Architecture"),
)
DEFAULT_THEME: str = "Exploration & Discovery"
