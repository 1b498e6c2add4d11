"""Profile document normalizer.

The upstream AI pipeline writes each business profile as a JSON tree in one of
two shapes, and partially migrated documents mix them section by section:

* legacy: numbered keys (``services.service_1``, ``faqs.faq_1``,
  ``what_to_expect.scenario_1``, ``locations.location_1``, ``included_1..4``)
* current: ordered lists (``services: [...]``, ``faqs.all_questions.<bucket>``,
  ``what_to_expect: [...]``, ``locations_and_hours.locations[0]``,
  ``whats_included: [...]``)

Every field is resolved independently with ``first_present``: the current-shape
accessors are tried first, then the legacy ones, then a typed default. The
result is a ``CanonicalBusiness`` whose scalars are always ``str`` and whose
collections are always lists, so downstream payload builders never see
``None``.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")
Accessor = Callable[[Any], Any]

PLACEHOLDERS = frozenset({"", "<>", "null", "undefined"})

SERVICE_INDEX_CAP = 10
SCENARIO_INDEX_CAP = 10
FAQ_INDEX_CAP = 20
REFERENCE_INDEX_CAP = 10
GALLERY_INDEX_CAP = 15
INCLUDED_ITEMS = 4
BADGES = 4

# Case-sensitive: "Miami, FL 33101" or "Miami, FL 33101-1234"
CITY_STATE_ZIP = re.compile(r"^\s*(?P<city>[^,]+?)\s*,\s*(?P<state>[A-Z]{2})\s+(?P<postal>\d{5})(?:-\d{4})?\s*$")


def is_missing(value: Any) -> bool:
    """True for absent values and the placeholder strings the AI pipeline emits."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in PLACEHOLDERS
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def text(value: Any) -> str:
    if is_missing(value) or isinstance(value, (list, tuple, dict)):
        return ""
    return str(value).strip()


def dig(node: Any, *keys: Any) -> Any:
    for key in keys:
        if isinstance(key, int):
            if not isinstance(node, list) or not -len(node) <= key < len(node):
                return None
            node = node[key]
        elif isinstance(node, Mapping):
            node = node.get(key)
        else:
            return None
        if node is None:
            return None
    return node


def at(*keys: Any) -> Accessor:
    return lambda doc: dig(doc, *keys)


def first_present(doc: Any, accessors: Sequence[Accessor], default: T) -> T:
    """Return the first accessor result that is present and non-empty."""
    for accessor in accessors:
        value = accessor(doc)
        if not is_missing(value):
            return value
    return default


def first_text(doc: Any, *paths: Tuple[Any, ...]) -> str:
    return text(first_present(doc, [at(*p) for p in paths], ""))


# -----------------------------------------------------------------------------
#  Canonical record
# -----------------------------------------------------------------------------

@dataclass
class Service:
    title: str
    price: str = ""
    description: str = ""
    duration: str = ""
    included: List[str] = field(default_factory=list)


@dataclass
class Faq:
    question: str
    answer: str = ""


@dataclass
class Scenario:
    title: str
    recommended_for: str = ""
    pro_tip: str = ""
    involved: List[str] = field(default_factory=list)


@dataclass
class Location:
    name: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    phone: str = ""
    hours: str = ""
    maps_url: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.street or self.city or self.name)


@dataclass
class QuickReference:
    service: str
    duration: str = ""
    complexity: str = ""
    best_for: str = ""
    price_range: str = ""


@dataclass
class CanonicalBusiness:
    name: str = ""
    slug: str = ""
    category: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    maps_url: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    tagline: str = ""
    summary: str = ""
    about: str = ""
    badges: List[str] = field(default_factory=list)
    pricing: str = ""
    facebook_url: str = ""
    instagram_url: str = ""
    youtube_url: str = ""
    schema_json: str = ""
    meta_title: str = ""
    meta_description: str = ""
    hero_image_url: str = ""
    logo_url: str = ""
    services: List[Service] = field(default_factory=list)
    faqs: List[Faq] = field(default_factory=list)
    scenarios: List[Scenario] = field(default_factory=list)
    location: Location = field(default_factory=Location)
    quick_reference: List[QuickReference] = field(default_factory=list)
    gallery_urls: List[str] = field(default_factory=list)


# -----------------------------------------------------------------------------
#  Shape helpers
# -----------------------------------------------------------------------------

def _sequence(value: Any) -> List[Any]:
    return list(value) if isinstance(value, list) else []


def _numbered(section: Any, prefix: str, cap: int) -> List[Any]:
    """Items keyed ``<prefix>_1..<prefix>_<cap>``; absent indices are skipped."""
    if not isinstance(section, Mapping):
        return []
    found = []
    for index in range(1, cap + 1):
        item = section.get(f"{prefix}_{index}")
        if item is not None:
            found.append(item)
    return found


def _item_text(value: Any) -> str:
    if isinstance(value, Mapping):
        return first_text(value, ("item",), ("name",), ("title",), ("text",))
    return text(value)


def _texts(values: Sequence[Any], limit: int) -> List[str]:
    out = [_item_text(v) for v in values]
    return [v for v in out if v][:limit]


def _strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix):].strip() if value.lower().startswith(prefix) else value


def _hours_text(value: Any) -> str:
    if isinstance(value, Mapping):
        parts = [f"{k}: {text(v)}" for k, v in value.items() if not is_missing(v)]
        return "; ".join(parts)
    if isinstance(value, list):
        return "; ".join(t for t in (_item_text(v) for v in value) if t)
    return text(value)


def _json_text(value: Any) -> str:
    if isinstance(value, (dict, list)) and value:
        return json.dumps(value, ensure_ascii=False)
    return text(value)


def split_city_state_zip(value: str) -> Tuple[str, str, str]:
    match = CITY_STATE_ZIP.match(value or "")
    if not match:
        return "", "", ""
    return match.group("city"), match.group("state"), match.group("postal")


# -----------------------------------------------------------------------------
#  Sections
# -----------------------------------------------------------------------------

def _included(item: Any) -> List[str]:
    return first_present(
        item,
        [
            lambda i: _texts(_sequence(dig(i, "whats_included")), INCLUDED_ITEMS),
            lambda i: _texts([dig(i, f"included_{n}") for n in range(1, INCLUDED_ITEMS + 1)], INCLUDED_ITEMS),
        ],
        [],
    )


def _service(item: Any) -> Service:
    return Service(
        title=first_text(item, ("title",), ("name",), ("service_name",)),
        price=first_text(item, ("price",), ("price_label",), ("starting_price",)),
        description=first_text(item, ("description",), ("short_description",)),
        duration=first_text(item, ("duration",), ("typical_duration",)),
        included=_included(item),
    )


def _services(doc: Any) -> List[Service]:
    def build(items: List[Any]) -> List[Service]:
        return [s for s in (_service(i) for i in items if isinstance(i, Mapping)) if s.title]

    return first_present(
        doc,
        [
            lambda d: build(_sequence(dig(d, "services"))),
            lambda d: build(_numbered(dig(d, "services"), "service", SERVICE_INDEX_CAP)),
        ],
        [],
    )


def _faq(item: Any) -> Faq:
    return Faq(
        question=first_text(item, ("question",), ("q",)),
        answer=first_text(item, ("answer",), ("a",)),
    )


def _bucketed(section: Any) -> List[Any]:
    """FAQs grouped into category buckets, flattened in bucket order."""
    if not isinstance(section, Mapping):
        return []
    flat: List[Any] = []
    for bucket in section.values():
        flat.extend(_sequence(bucket))
    return flat


def _faqs(doc: Any) -> List[Faq]:
    def build(items: List[Any]) -> List[Faq]:
        return [f for f in (_faq(i) for i in items if isinstance(i, Mapping)) if f.question]

    return first_present(
        doc,
        [
            lambda d: build(_bucketed(dig(d, "faqs", "all_questions"))),
            lambda d: build(_sequence(dig(d, "faqs"))),
            lambda d: build(_numbered(dig(d, "faqs"), "faq", FAQ_INDEX_CAP)),
        ],
        [],
    )


def _scenario(item: Any) -> Scenario:
    involved = first_present(
        item,
        [
            lambda i: _texts(_sequence(dig(i, "whats_involved")), INCLUDED_ITEMS),
            lambda i: _texts([dig(i, f"involved_{n}") for n in range(1, INCLUDED_ITEMS + 1)], INCLUDED_ITEMS),
        ],
        [],
    )
    return Scenario(
        title=first_text(item, ("title",), ("scenario",), ("name",)),
        recommended_for=first_text(item, ("recommended_for",), ("best_for",)),
        pro_tip=first_text(item, ("pro_tip",), ("tip",)),
        involved=involved,
    )


def _scenarios(doc: Any) -> List[Scenario]:
    def build(items: List[Any]) -> List[Scenario]:
        return [s for s in (_scenario(i) for i in items if isinstance(i, Mapping)) if s.title]

    return first_present(
        doc,
        [
            lambda d: build(_sequence(dig(d, "what_to_expect"))),
            lambda d: build(_numbered(dig(d, "what_to_expect"), "scenario", SCENARIO_INDEX_CAP)),
            lambda d: build(_numbered(dig(d, "scenarios"), "scenario", SCENARIO_INDEX_CAP)),
        ],
        [],
    )


def _location(doc: Any) -> Location:
    raw = first_present(
        doc,
        [
            at("locations_and_hours", "locations", 0),
            at("locations_and_hours", "primary_location"),
            at("locations", "location_1"),
        ],
        {},
    )
    if not isinstance(raw, Mapping):
        raw = {}
    contact = dig(doc, "location_and_contact")
    if not isinstance(contact, Mapping):
        contact = {}
    combined = first_text(raw, ("city_state_zip",), ("address_2",))
    if combined:
        city, state, postal = split_city_state_zip(combined)
    else:
        # primary_location and location_and_contact keep the parts separately
        city = first_text(raw, ("city",)) or first_text(contact, ("city",))
        state = first_text(raw, ("state",)) or first_text(contact, ("state",))
        postal = first_text(raw, ("zip",), ("postal_code",)) or first_text(contact, ("zip",), ("postal_code",))
    return Location(
        name=first_text(raw, ("name",), ("location_name",)),
        street=(
            first_text(raw, ("street_address",), ("address",), ("address_1",))
            or first_text(contact, ("address",), ("street_address",))
        ),
        city=city,
        state=state,
        postal_code=postal,
        phone=first_text(raw, ("phone",)),
        hours=_hours_text(first_present(raw, [at("hours"), at("business_hours"), at("hours_summary")], "")),
        maps_url=first_text(raw, ("maps_url",), ("google_maps_url",), ("directions_url",)),
    )


def _reference(item: Any) -> QuickReference:
    return QuickReference(
        service=first_text(item, ("service",), ("service_name",), ("name",)),
        duration=first_text(item, ("duration",)),
        complexity=first_text(item, ("complexity",)),
        best_for=first_text(item, ("best_for",)),
        price_range=first_text(item, ("price_range",), ("price",)),
    )


def _quick_reference(doc: Any) -> List[QuickReference]:
    def build(items: List[Any]) -> List[QuickReference]:
        return [r for r in (_reference(i) for i in items if isinstance(i, Mapping)) if r.service]

    return first_present(
        doc,
        [
            lambda d: build(_sequence(dig(d, "quick_reference_guide"))),
            lambda d: build(_sequence(dig(d, "quick_reference_guide", "rows"))),
            lambda d: build(_numbered(dig(d, "quick_reference_guide"), "row", REFERENCE_INDEX_CAP)),
        ],
        [],
    )


def _gallery_url(value: Any) -> str:
    if isinstance(value, Mapping):
        return first_text(value, ("url",), ("image_url",), ("src",))
    return text(value)


def embedded_gallery(doc: Any) -> List[str]:
    """Image URLs embedded in the document (``photo_gallery.image_1..15``)."""

    def build(items: List[Any]) -> List[str]:
        return [u for u in (_gallery_url(i) for i in items) if u]

    return first_present(
        doc,
        [
            lambda d: build(_sequence(dig(d, "photo_gallery", "images"))),
            lambda d: build(_numbered(dig(d, "photo_gallery"), "image", GALLERY_INDEX_CAP)),
        ],
        [],
    )


def _badges(doc: Any) -> List[str]:
    return first_present(
        doc,
        [
            lambda d: _texts(_sequence(dig(d, "about_and_badges", "badges")), BADGES),
            lambda d: _texts([dig(d, "about", f"badge_{n}") for n in range(1, BADGES + 1)], BADGES),
        ],
        [],
    )


# Scalar fields: (accessor paths in priority order, post-processing)
_SCALAR_RULES: Dict[str, Tuple[Sequence[Tuple[Any, ...]], Optional[Callable[[str], str]]]] = {
    "name": ((("hero", "business_name"), ("hero", "company_name"), ("business_name",)), None),
    "slug": ((("hero", "slug"), ("slug",)), None),
    "category": ((("hero", "category"), ("business_category",), ("category",)), None),
    "phone": (
        (("hero", "quick_actions", "call_tel"), ("location_and_contact", "phone"), ("contact", "phone")),
        lambda v: _strip_prefix(v, "tel:"),
    ),
    "email": (
        (("hero", "quick_actions", "email_mailto"), ("location_and_contact", "email"), ("contact", "email")),
        lambda v: _strip_prefix(v, "mailto:"),
    ),
    "website": ((("hero", "quick_actions", "website_url"), ("location_and_contact", "website")), None),
    "maps_url": (
        (("hero", "quick_actions", "directions_url"), ("location_and_contact", "google_maps_url")),
        None,
    ),
    "tagline": ((("hero", "tagline"), ("about", "tagline")), None),
    "summary": (
        (
            ("ai_overview", "ai_summary"),
            ("about_and_badges", "ai_summary_120w"),
            ("ai_overview", "overview_line"),
            ("about", "ai_summary"),
        ),
        None,
    ),
    "about": ((("about_and_badges", "about_text"), ("about", "about_text")), None),
    "pricing": ((("pricing", "pricing_information"), ("pricing", "summary"), ("pricing_summary",)), None),
    "facebook_url": ((("social_media", "facebook_url"), ("social_links", "facebook")), None),
    "instagram_url": ((("social_media", "instagram_url"), ("social_links", "instagram")), None),
    "youtube_url": ((("social_media", "youtube_url"), ("social_links", "youtube")), None),
    "meta_title": ((("seo_and_schema", "meta_title"), ("seo", "meta_title")), None),
    "meta_description": ((("seo_and_schema", "meta_description"), ("seo", "meta_description")), None),
    "hero_image_url": ((("hero", "hero_image_url"), ("hero", "hero_image", "url")), None),
    "logo_url": ((("hero", "logo_url"), ("logo_url",)), None),
}


def resolve_scalar(doc: Any, name: str) -> str:
    paths, post = _SCALAR_RULES[name]
    value = first_text(doc, *paths)
    if value and post:
        value = post(value)
    return value


def normalize(document: Any) -> CanonicalBusiness:
    doc = document if isinstance(document, Mapping) else {}
    record = CanonicalBusiness(**{name: resolve_scalar(doc, name) for name in _SCALAR_RULES})
    record.schema_json = _json_text(
        first_present(doc, [at("seo_and_schema", "schema_json_ld"), at("seo_and_schema", "json_ld"), at("seo", "schema")], "")
    )
    record.badges = _badges(doc)
    record.services = _services(doc)
    record.faqs = _faqs(doc)
    record.scenarios = _scenarios(doc)
    record.location = _location(doc)
    record.quick_reference = _quick_reference(doc)
    record.gallery_urls = embedded_gallery(doc)
    record.street = record.location.street
    record.city = record.location.city
    record.state = record.location.state
    record.postal_code = record.location.postal_code
    if not record.maps_url:
        record.maps_url = record.location.maps_url
    return record
