"""
Criteria normalization: exam mode, category labels, aircraft, difficulty and counts.

Category labels arrive from many places (selector keys, legacy keys, Spanish
labels, exam titles). They are resolved against one canonical table:

    1. a canonical key resolves to itself
    2. a registered label resolves to its canonical key (or key set)
    3. anything else is kept as a literal substring matcher

A label belongs to exactly one entry; the index refuses duplicates.
"""
import logging
import re
import unicodedata
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional, Tuple

from typerating import settings

logger = logging.getLogger(__name__)

MODES = ("practice", "timed", "review")
DEFAULT_MODE = "practice"

DIFFICULTIES = ("basic", "intermediate", "advanced")
DIFFICULTY_ALIASES = {"beginner": "basic"}

ALL = "ALL"
ALL_DIFFICULTIES = "all"
NO_CATEGORY_TOKENS = {"", "all", "none"}

AIRCRAFT_TYPES = ("A320_FAMILY", "B737_FAMILY", "GENERAL")
GENERAL_AIRCRAFT_TAGS = frozenset({"GENERAL", "GENERAL_AVIATION"})
AIRCRAFT_ALIASES = {
    "A320": "A320_FAMILY",
    "AIRBUS_A320": "A320_FAMILY",
    "B737": "B737_FAMILY",
    "BOEING_737": "B737_FAMILY",
    "BOEING_737_FAMILY": "B737_FAMILY",
}

GENERAL_CATEGORY = "aircraft-general"
PRACTICE_TITLE_PREFIX = "práctica:"


@dataclass(frozen=True)
class CanonicalCategory:
    key: str
    description: str
    matches: Tuple[str, ...]
    labels: Tuple[str, ...] = ()


CATEGORY_TABLE: Tuple[CanonicalCategory, ...] = (
    CanonicalCategory(
        key="aircraft-general",
        description="General aircraft systems and knowledge",
        matches=(
            "General", "Aircraft General", "Airplane General", "General Knowledge",
            "General Aircraft Knowledge", "Basic Aircraft Systems",
            "Sistema Eléctrico", "Sistema Hidráulico", "Sistema Neumático",
            "Sistema de Combustible", "Sistema de Presurización", "Sistema de Frenos",
            "Controles de Vuelo", "Tren de Aterrizaje", "Sistema de Oxígeno",
            "Sistemas de Alerta", "Motor y APU",
            "Air Systems", "Pressurization", "Air Conditioning", "Pneumatic",
            "Bleed Air", "Ventilation", "Air Bleed/Cond/Press/Vent",
            "Aircraft Systems", "Hydraulic Systems", "Electrical Systems",
            "Fuel Systems", "Oxygen Systems", "Landing Gear Systems",
            "Flight Controls", "APU Systems", "Engine Systems",
            "Sistemas de Aeronave", "Sistema General", "Sistemas Generales",
            "General Aircraft", "Aircraft General Systems", "Sistemas Generales de Aeronave",
            "General Aircraft Systems", "Integrated Aircraft Systems", "General Systems",
            "Performance", "Aircraft Performance",
        ),
        labels=(
            "airplane-general", "general", "general aircraft", "general airplane",
            "sistemas", "sistema", "sistemas-aeronave", "sistemas de aeronave",
            "aircraft-systems", "airplane systems",
        ),
    ),
    CanonicalCategory(
        key="load-acceleration-limits",
        description="Structural load and acceleration limits",
        matches=(
            "Load Limits", "Acceleration Limits", "Structural Limits", "G-Force Limits",
            "Load Acceleration Limits", "Load Factor Limits", "G-Limits",
            "Límites de Carga", "Límites de Aceleración", "Límites Estructurales",
            "Structural Loading", "Acceleration Constraints", "G-Force Constraints",
        ),
        labels=("límites de carga", "load limits"),
    ),
    CanonicalCategory(
        key="environment-limits",
        description="Environmental and operational envelope limits",
        matches=(
            "Environment Limits", "Environmental Limits", "Weather Limits",
            "Operational Limits", "Temperature Limits", "Altitude Limits",
            "Límites Ambientales", "Límites Operacionales",
            "Weather Constraints", "Environmental Constraints", "Operational Constraints",
        ),
        labels=("límites ambientales",),
    ),
    CanonicalCategory(
        key="weight-limits",
        description="Weight, balance and centre of gravity limits",
        matches=(
            "Weight Limits", "Weight and Balance", "Mass Limits", "CG Limits",
            "Límites de Peso", "Peso y Balance", "Límites de Masa",
            "Weight", "Balance", "Center of Gravity", "Mass", "Performance",
            "Weight and Balance Constraints", "Mass Limitations", "CG Constraints",
        ),
        labels=("weight and balance", "peso y balance", "límites de peso"),
    ),
    CanonicalCategory(
        key="speed-limits",
        description="Airspeed and Mach limits",
        matches=(
            "Speed Limits", "Velocity Limits", "Airspeed Limits", "Mach Limits",
            "Límites de Velocidad", "Velocidad Máxima", "VMO", "MMO",
            "Airspeed Constraints", "Velocity Constraints", "Mach Number Limits",
        ),
        labels=("límites de velocidad", "airspeed limits"),
    ),
    CanonicalCategory(
        key="air-bleed-cond-press-vent",
        description="Bleed air, air conditioning, pressurization and ventilation",
        matches=(
            "Air Systems", "Pressurization", "Air Conditioning", "Pneumatic",
            "Bleed Air", "Ventilation", "Air Bleed/Cond/Press/Vent",
            "Sistema Neumático", "Presurización", "Aire Acondicionado",
            "Ventilación", "Sistema de Aire", "Cabin Pressure", "Environmental Control",
            "Control Ambiental", "Sistema de Presurización",
            "Bleed Air Systems", "Pressurization Systems", "Air Conditioning Systems",
            "Pneumatic Systems", "Air Conditioning & Pressurization",
        ),
        labels=(
            "air-systems", "pressurization", "presurización", "air conditioning",
            "aire acondicionado", "sistema de presurización",
        ),
    ),
    CanonicalCategory(
        key="autoflight",
        description="Autopilot, flight directors and autothrust",
        matches=(
            "Autopilot", "Flight Management", "Automatic Flight", "AFCS", "Autoflight",
            "Autopiloto", "Sistema de Vuelo Automático", "Gestión de Vuelo",
            "Automatic Flight Control", "Autonomous Flight", "Flight Automation",
            "Autonomous Flight Systems",
        ),
        labels=("automatic-flight", "autopilot", "autopiloto"),
    ),
    CanonicalCategory(
        key="apu",
        description="Auxiliary power unit",
        matches=(
            "APU", "Auxiliary Power Unit", "APU Systems", "Unidad de Potencia Auxiliar",
            "Sistema APU", "Auxiliary Power", "Power Generation Unit",
        ),
        labels=("auxiliary power unit", "unidad de potencia auxiliar"),
    ),
    CanonicalCategory(
        key="engines",
        description="Powerplant systems and engine operation",
        matches=(
            "Engines", "Engine Systems", "Motor y APU", "Powerplant", "Engine Operations",
            "Motores", "Sistema de Motores", "Operación de Motores",
            "Powerplant Systems", "Engine Management", "Propulsion Systems",
            "Engines and APU",
        ),
        labels=("motores", "powerplant"),
    ),
    CanonicalCategory(
        key="flight-controls",
        description="Primary and secondary flight controls",
        matches=(
            "Flight Controls", "Control Systems", "Primary Controls", "Secondary Controls",
            "Controles de Vuelo", "Sistema de Controles",
            "Aircraft Controls", "Control Surfaces", "Flight Control Systems",
        ),
        labels=("controles de vuelo",),
    ),
    CanonicalCategory(
        key="fuel",
        description="Fuel storage, distribution and management",
        matches=(
            "Fuel", "Fuel Systems", "Fuel Management", "Sistema de Combustible",
            "Gestión de Combustible", "Fuel Systems Management", "Fuel Distribution",
            "Fuel Storage",
        ),
        labels=("sistema de combustible", "combustible"),
    ),
    CanonicalCategory(
        key="ice-rain-protection",
        description="Ice and rain protection",
        matches=(
            "Ice Protection", "Anti-Ice", "Rain Protection", "Ice and Rain Protection",
            "Anti-Ice and Rain", "Protección contra Hielo", "Sistema Antihielo",
            "Ice Protection Systems", "Anti-Ice Systems", "Weather Protection",
            "Ice Prevention",
        ),
        labels=("anti-ice-rain", "anti ice", "protección contra hielo"),
    ),
    CanonicalCategory(
        key="landing-gear",
        description="Landing gear, brakes and steering",
        matches=(
            "Landing Gear", "Gear Systems", "Brakes", "Landing Gear and Brakes",
            "Tren de Aterrizaje", "Sistema de Frenos",
            "Undercarriage", "Landing Systems", "Braking Systems",
        ),
        labels=("tren de aterrizaje", "brakes"),
    ),
    CanonicalCategory(
        key="oxygen",
        description="Crew and passenger oxygen",
        matches=(
            "Oxygen", "Oxygen Systems", "Emergency Oxygen", "Life Support",
            "Oxígeno", "Sistema de Oxígeno", "Oxígeno de Emergencia",
            "Oxygen Generation", "Life Support Systems", "Emergency Breathing",
        ),
        labels=("oxígeno",),
    ),
    CanonicalCategory(
        key="gpws",
        description="Ground proximity and terrain awareness warnings",
        matches=(
            "GPWS", "Ground Proximity Warning", "Terrain Warning", "TAWS",
            "Sistema de Alerta de Proximidad al Terreno",
            "Ground Proximity Systems", "Terrain Awareness",
        ),
        labels=("taws", "egpws"),
    ),
    CanonicalCategory(
        key="navigation",
        description="Flight management and navigation",
        matches=(
            "Navigation", "Flight Management and Navigation", "Navegación", "GPS", "FMS",
            "Sistema de Navegación", "Flight Management", "RNAV", "RNP", "ILS",
            "Flight Navigation", "Aircraft Navigation", "Positioning Systems",
            "Flight Planning", "Navigation Management", "Flight Path Management",
        ),
        labels=(
            "navegacion", "flight-management", "flight management and navigation",
        ),
    ),
    CanonicalCategory(
        key="communication",
        description="Radio and datalink communication",
        matches=(
            "Communication", "Radio", "ACARS", "Communications",
            "Comunicación", "Comunicaciones", "Sistema de Comunicaciones",
            "Radio Communication", "Aircraft Communication Systems",
        ),
        labels=("communications", "comunicación", "comunicaciones"),
    ),
    CanonicalCategory(
        key="electrical",
        description="Electrical power generation and distribution",
        matches=(
            "Electrical", "Electrical Systems", "Power Systems", "Sistema Eléctrico",
            "Aircraft Electrical", "Power Distribution", "Electrical Power",
        ),
        labels=(
            "sistema eléctrico", "electrical systems", "electrical system", "power systems",
        ),
    ),
    CanonicalCategory(
        key="hydraulics",
        description="Hydraulic power systems",
        matches=(
            "Hydraulics", "Hydraulic Systems", "Sistema Hidráulico", "Hydraulic Power",
            "Aircraft Hydraulics", "Hydraulic Actuation", "Hydraulic Systems Management",
            "Hydraulic System",
        ),
        labels=("hydraulic", "sistema hidráulico", "hydraulic systems"),
    ),
    CanonicalCategory(
        key="fire-protection",
        description="Fire detection and extinguishing",
        matches=(
            "Fire Protection", "Fire Systems", "Fire Detection", "Fire Suppression",
            "Sistema de Protección contra Incendios", "Fire Safety", "Fire Detection Systems",
        ),
        labels=("protección contra incendios",),
    ),
    CanonicalCategory(
        key="flight-protection",
        description="Flight envelope protections",
        matches=(
            "Flight Protection", "Protección de Vuelo", "Sistema de Vuelo",
            "Alpha Protection", "Overspeed Protection", "Load Factor Protection",
            "Aircraft Safety Systems", "Protection Mechanisms", "Flight Safety",
            "Aircraft Protection",
        ),
        labels=("proteccion-vuelo", "envelope protection"),
    ),
    CanonicalCategory(
        key="flight-instruments",
        description="Flight instruments and displays",
        matches=(
            "Flight Instruments", "Displays", "ECAM", "EICAS",
            "Flight Instruments and Displays", "Instrumentos de Vuelo",
            "Aircraft Instruments", "Flight Displays",
        ),
        labels=("instrumentos de vuelo", "displays"),
    ),
    CanonicalCategory(
        key="warning-systems",
        description="Alerting and warning systems",
        matches=(
            "Warning Systems", "Alert Systems", "ECAM", "EICAS", "Alerting Systems",
            "Sistemas de Alerta", "Aircraft Warning Systems", "Alerting Mechanisms",
        ),
        labels=("sistemas de alerta",),
    ),
    CanonicalCategory(
        key="approach-procedures",
        description="Approach and landing procedures",
        matches=(
            "Approach Procedures", "Procedimientos de Aproximación",
            "Sistema de Aterrizaje Automático", "ILS Approach", "RNAV Approach", "Autoland",
            "Landing Procedures", "Approach Navigation",
        ),
        labels=("procedimientos-aproximacion",),
    ),
    CanonicalCategory(
        key="emergency-procedures",
        description="Emergency and abnormal procedures",
        matches=(
            "Emergency Procedures", "Procedimientos de Emergencia",
            "Emergency Descent", "Engine Fire", "Rapid Decompression",
            "Emergency Operations", "Abnormal Procedures",
        ),
        labels=("procedimientos-emergencia", "abnormal procedures"),
    ),
    CanonicalCategory(
        key="meteorology",
        description="Aviation meteorology",
        matches=(
            "Meteorology", "Meteorología", "Weather", "Wind Shear", "Turbulence",
            "Icing Conditions", "Atmospheric Conditions", "Weather Phenomena",
        ),
        labels=("meteorologia", "weather"),
    ),
    CanonicalCategory(
        key="regulations",
        description="Aviation regulations and operating rules",
        matches=(
            "Regulations", "Reglamentación", "EASA", "ICAO", "FAA",
            "Flight Time Limitations", "Operating Rules", "Aviation Regulations",
            "Flight Rules", "Aviation Rules",
        ),
        labels=("reglamentacion",),
    ),
    CanonicalCategory(
        key="performance",
        description="Aircraft performance calculations",
        matches=(
            "Performance", "Aircraft Performance", "Flight Performance",
            "Rendimiento", "Performance de Aeronave", "Rendimiento de Vuelo",
            "Procedimientos de Despegue", "Takeoff Performance",
        ),
        labels=("rendimiento", "takeoff performance"),
    ),
)

# Labels that select more than one canonical category.
COMBINED_LABELS: Dict[str, Tuple[str, ...]] = {
    "engines-apu": ("engines", "apu"),
    "engines and apu": ("engines", "apu"),
    "motor y apu": ("engines", "apu"),
    "limitations": ("load-acceleration-limits", "environment-limits", "weight-limits", "speed-limits"),
}


def sanitize(text) -> str:
    """Lowercase, fold accents, drop punctuation and collapse whitespace."""
    if text is None:
        return ""
    text = unicodedata.normalize("NFKD", str(text))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[-_/]", " ", text.lower())
    text = re.sub(r"[^\w\s]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _build_index(table: Iterable[CanonicalCategory], combined: Dict[str, Tuple[str, ...]]) -> Dict[str, Tuple[str, ...]]:
    index: Dict[str, Tuple[str, ...]] = {}
    owners: Dict[str, str] = {}

    def register(label: str, keys: Tuple[str, ...], owner: str):
        token = sanitize(label)
        if not token or token in NO_CATEGORY_TOKENS:
            raise ValueError(f"Category label {label!r} is reserved or empty")
        if token in owners and owners[token] != owner:
            raise ValueError(f"Category label {label!r} registered by both {owners[token]!r} and {owner!r}")
        index[token] = keys
        owners[token] = owner

    entries = list(table)
    for entry in entries:
        register(entry.key, (entry.key,), entry.key)
    for entry in entries:
        for label in entry.labels:
            register(label, (entry.key,), entry.key)
    known = {entry.key for entry in entries}
    for label, keys in combined.items():
        unknown = [k for k in keys if k not in known]
        if unknown:
            raise ValueError(f"Combined label {label!r} refers to unknown categories {unknown}")
        register(label, tuple(sorted(keys)), f"combined:{label}")
    return index


CATEGORIES_BY_KEY: Dict[str, CanonicalCategory] = {entry.key: entry for entry in CATEGORY_TABLE}
LABEL_INDEX = _build_index(CATEGORY_TABLE, COMBINED_LABELS)


def _matchers_for(key: str) -> Tuple[str, ...]:
    entry = CATEGORIES_BY_KEY.get(key)
    if entry is None:
        return (sanitize(key),)
    tokens = [sanitize(entry.key)] + [sanitize(m) for m in entry.matches]
    return tuple(dict.fromkeys(t for t in tokens if t))


MATCHERS: Dict[str, Tuple[str, ...]] = {key: _matchers_for(key) for key in CATEGORIES_BY_KEY}


def resolve_category_label(label) -> Tuple[str, ...]:
    """
    Resolve one raw label to canonical keys, or to itself as a literal.

    Returns an empty tuple for the "no filter" tokens.
    """
    token = sanitize(label)
    if token in NO_CATEGORY_TOKENS:
        return ()
    keys = LABEL_INDEX.get(token)
    if keys is not None:
        return keys
    logger.debug(f"No canonical category for {label!r}; using literal matcher {token!r}")
    return (token,)


def _split_labels(raw) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return raw.split(",")
    if not isinstance(raw, Iterable):
        return [str(raw)]
    labels: List[str] = []
    for item in raw:
        labels.extend(_split_labels(item))
    return labels


def normalize_categories(raw) -> Tuple[str, ...]:
    keys = set()
    for label in _split_labels(raw):
        keys.update(resolve_category_label(label))
    return tuple(sorted(keys))


def category_from_title(title: Optional[str]) -> str:
    """Extract the category from a practice exam title, e.g. 'Práctica: Electrical'."""
    if not title:
        return ""
    stripped = title.strip()
    if stripped.lower().startswith(PRACTICE_TITLE_PREFIX):
        return stripped[len(PRACTICE_TITLE_PREFIX):].strip()
    return ""


def normalize_aircraft(raw) -> str:
    token = str(raw or "").strip().upper()
    token = re.sub(r"[\s\-]+", "_", token)
    if not token or token == ALL:
        return ALL
    return AIRCRAFT_ALIASES.get(token, token)


def normalize_difficulty(raw) -> str:
    token = str(raw or "").strip().lower()
    if not token or token == ALL_DIFFICULTIES:
        return ALL_DIFFICULTIES
    return DIFFICULTY_ALIASES.get(token, token)


def normalize_mode(raw) -> str:
    token = str(raw or "").strip().lower()
    return token if token in MODES else DEFAULT_MODE


def clamp_question_count(raw) -> int:
    try:
        count = int(raw)
    except (TypeError, ValueError):
        count = settings.DEFAULT_QUESTION_COUNT
    return max(settings.MIN_QUESTION_COUNT, min(settings.MAX_QUESTION_COUNT, count))


def clamp_time_limit(raw) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        minutes = int(raw)
    except (TypeError, ValueError):
        return None
    return max(0, min(settings.MAX_TIME_LIMIT_MINUTES, minutes))


@dataclass(frozen=True)
class Criteria:
    """Normalized selection criteria. Build with normalize()."""

    mode: str = DEFAULT_MODE
    categories: Tuple[str, ...] = ()
    aircraft: str = ALL
    difficulty: str = ALL_DIFFICULTIES
    question_count: int = settings.DEFAULT_QUESTION_COUNT
    time_limit: Optional[int] = None

    @property
    def filters_aircraft(self) -> bool:
        return self.aircraft != ALL

    @property
    def filters_difficulty(self) -> bool:
        return self.difficulty != ALL_DIFFICULTIES

    def to_dict(self) -> dict:
        return asdict(self)


def _first(raw: dict, *names, default=None):
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return default


def normalize(raw=None) -> Criteria:
    """
    Normalize raw UI criteria into a Criteria value.

    Args:
        raw: mapping with any of mode, category/categories, aircraft, difficulty,
            question_count/questionCount/count, time_limit/timeLimit,
            exam_title/title; or an already-normalized Criteria

    Returns:
        Criteria (pure value; same input always gives the same output)
    """
    if isinstance(raw, Criteria):
        raw = raw.to_dict()
    raw = dict(raw or {})

    category = _first(raw, "categories", "category", default="")
    if not normalize_categories(category):
        title_category = category_from_title(_first(raw, "exam_title", "examTitle", "title"))
        if title_category:
            category = title_category

    return Criteria(
        mode=normalize_mode(raw.get("mode")),
        categories=normalize_categories(category),
        aircraft=normalize_aircraft(raw.get("aircraft")),
        difficulty=normalize_difficulty(raw.get("difficulty")),
        question_count=clamp_question_count(
            _first(raw, "question_count", "questionCount", "count", default=settings.DEFAULT_QUESTION_COUNT)
        ),
        time_limit=clamp_time_limit(_first(raw, "time_limit", "timeLimit")),
    )


def category_matchers(category: str) -> Tuple[str, ...]:
    return MATCHERS.get(category) or (sanitize(category),)


def category_matches(question_category, selected: Iterable[str]) -> bool:
    """Case-insensitive substring match, in both directions, against any selected category."""
    text = sanitize(question_category)
    if not text:
        return False
    for category in selected:
        for matcher in category_matchers(category):
            if matcher and (matcher in text or text in matcher):
                return True
    return False


def aircraft_matches(question_aircraft, aircraft: str) -> bool:
    if aircraft == ALL:
        return True
    question_aircraft = normalize_aircraft(question_aircraft)
    if question_aircraft in GENERAL_AIRCRAFT_TAGS:
        return True
    return question_aircraft == aircraft


def difficulty_matches(question_difficulty, difficulty: str) -> bool:
    if difficulty == ALL_DIFFICULTIES:
        return True
    return normalize_difficulty(question_difficulty) == difficulty
