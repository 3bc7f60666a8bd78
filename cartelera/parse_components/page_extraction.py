"""
Field extraction from a rendered event detail page.

Each logical field has an ordered tuple of ``ExtractionRule``s; the first rule
that yields a usable value wins. Rules run against the page HTML with
BeautifulSoup, so they can be exercised without a browser.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from cartelera.data_quality.cleaning import clean_and_normalize_text
from cartelera.parse_components.images import parse_srcset
from cartelera.schema_adapter import ImageCandidate, RawExtraction


def _has_value(value: str) -> bool:
    return bool(value)


@dataclass(frozen=True)
class ExtractionRule:
    selector: str
    attribute: Optional[str] = None          # None reads the element text
    predicate: Callable[[str], bool] = _has_value
    scan_all: bool = False                   # try every matching element, not only the first

    def _value_of(self, element: Tag) -> Optional[str]:
        if self.attribute:
            raw = element.get(self.attribute)
            return raw.strip() if isinstance(raw, str) and raw.strip() else None
        return clean_and_normalize_text(element.get_text(" "))

    def apply(self, soup: BeautifulSoup) -> Optional[str]:
        elements = soup.select(self.selector) if self.scan_all else [soup.select_one(self.selector)]
        for element in elements:
            if element is None:
                continue
            value = self._value_of(element)
            if value and self.predicate(value):
                return value
        return None


def first_match(soup: BeautifulSoup, rules: Tuple[ExtractionRule, ...]) -> Optional[str]:
    for rule in rules:
        value = rule.apply(soup)
        if value:
            return value
    return None


def _text_rules(*selectors: str) -> Tuple[ExtractionRule, ...]:
    return tuple(ExtractionRule(selector) for selector in selectors)


FIELD_RULES: Dict[str, Tuple[ExtractionRule, ...]] = {
    "title": _text_rules(
        'h1', '.event-title', '.evento-titulo', '[class*="event-name"]',
        '[class*="event-title"]', '.title',
    ) + (ExtractionRule('meta[property="og:title"]', attribute='content'),),
    "description": _text_rules(
        '.event-description', '.evento-descripcion', '[class*="description"]',
        '.description', '.detalle',
    ) + (ExtractionRule('meta[property="og:description"]', attribute='content'),),
    "long_description": _text_rules(
        '.event-details', '.evento-detalles', '[class*="long-description"]',
        '.full-description', '.content-description', 'article',
    ),
    "venue": _text_rules(
        '.venue', '.lugar', '[class*="venue"]', '[class*="location-name"]',
        '.event-venue', '.recinto', '[class*="place"]',
    ),
    "address": _text_rules(
        '.address', '.direccion', '[class*="address"]', '.location-address',
        '.event-address', '[class*="ubicacion"]',
    ),
    "date_text": _text_rules(
        '.event-date', '.fecha', '[class*="date"]', '.when',
        '.event-when', '[class*="fecha"]', 'time',
    ) + (ExtractionRule('time', attribute='datetime'),),
    "time_text": _text_rules(
        '.event-time', '.hora', '[class*="time"]:not([class*="datetime"])',
        '.when-time', '[class*="hora"]',
    ),
    "price_text": (
        # The total-price widget lists several rows; only the one with an amount counts.
        ExtractionRule('.precio-total, [class*="precio-total"]', predicate=lambda v: '$' in v, scan_all=True),
    ) + _text_rules(
        '.price', '.precio', '[class*="price"]', '.event-price',
        '[class*="precio"]', '.ticket-price',
    ),
    "category": _text_rules(
        '.category', '.categoria', '[class*="category"]',
        '.event-category', '[class*="categoria"]', '.genre',
    ),
    "ticket_url": tuple(
        ExtractionRule(selector, attribute='href')
        for selector in ('a[href*="comprar"]', 'a[href*="ticket"]', 'a[href*="entradas"]',
                         '.buy-ticket', '.comprar', 'a.btn-primary')
    ),
}

# (selector, priority) in provenance order
IMAGE_SOURCES: List[Tuple[str, int]] = [
    ('img[src*="ptocdn.net"]', 2),
    ('img[src*="eventos"]', 2),
    ('img.img_artist_thumb', 2),
    ('img.img-responsive', 2),
    ('.event-image img', 3),
    ('.evento-imagen img', 3),
    ('[class*="event-image"] img', 3),
    ('.gallery img', 3),
    ('.carousel img', 3),
    ('picture img', 3),
    ('.main-image img', 3),
    ('img[class*="event"]', 3),
    ('img[class*="poster"]', 3),
    ('figure img', 3),
]

FALLBACK_IMAGE_PRIORITY = 4


def _int_attr(element: Tag, name: str) -> Optional[int]:
    value = element.get(name)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _candidate_from_img(img: Tag, page_url: str, priority: int) -> Optional[ImageCandidate]:
    src = img.get('src') or img.get('data-src')
    if not src or src.startswith('data:'):
        return None

    srcset = img.get('srcset')
    width = _int_attr(img, 'width')
    if width is None and srcset:
        widths = [entry["width"] for entry in parse_srcset(srcset) if entry["width"]]
        width = max(widths) if widths else None

    return ImageCandidate(
        url=urljoin(page_url, src),
        alt=img.get('alt') or None,
        width=width,
        height=_int_attr(img, 'height'),
        priority=priority,
        srcset=srcset or None,
    )


def extract_image_candidates(soup: BeautifulSoup, page_url: str, include_fallback: bool = False) -> List[ImageCandidate]:
    candidates: List[ImageCandidate] = []

    og_image = ExtractionRule('meta[property="og:image"]', attribute='content').apply(soup)
    if og_image:
        candidates.append(ImageCandidate(url=urljoin(page_url, og_image), alt="Event Image", priority=1))

    sources = list(IMAGE_SOURCES)
    if include_fallback:
        sources.append(('img', FALLBACK_IMAGE_PRIORITY))

    for selector, priority in sources:
        for img in soup.select(selector):
            candidate = _candidate_from_img(img, page_url, priority)
            if candidate:
                candidates.append(candidate)
    return candidates


def apply_natural_sizes(candidates: List[ImageCandidate], sizes: Dict[str, Tuple[int, int]]) -> List[ImageCandidate]:
    """Replaces declared dimensions with the rendered (natural) ones measured in the browser."""
    measured = []
    for candidate in candidates:
        size = sizes.get(candidate.url)
        if size and size[0] and size[1]:
            candidate = candidate.model_copy(update={"width": size[0], "height": size[1]})
        measured.append(candidate)
    return measured


def extract_raw_fields(html: str, page_url: str) -> RawExtraction:
    soup = BeautifulSoup(html, "html.parser")

    fields = {name: first_match(soup, rules) for name, rules in FIELD_RULES.items()}
    fields["ticket_url"] = fields["ticket_url"] or page_url

    return RawExtraction(
        images=extract_image_candidates(soup, page_url),
        source_url=page_url,
        **fields,
    )
