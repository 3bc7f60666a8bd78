"""
Pure field normalizers: titles, categories, prices, identifiers, URLs and comunas.

None of these touch the network or the page; they take the strings produced by
``page_extraction`` and return normalized values (or None when nothing usable
was found, never a guess).
"""
import re
from typing import List, Optional
from urllib.parse import urljoin

from cartelera.data_quality.cleaning import normalize_whitespace
from cartelera.schema_adapter import ParsedPrice

CATEGORY_MAPPING = {
    'Música': 'Music',
    'Conciertos': 'Concerts',
    'Teatro': 'Theater',
    'Deportes': 'Sports',
    'Familia': 'Family',
    'Especiales': 'Special Events',
    'Festivales': 'Festivals',
    'Humor': 'Comedy',
    'Danza': 'Dance',
    'Exposiciones': 'Exhibitions',
    'Cine': 'Cinema',
    'Infantil': 'Kids',
}

# Ordered; only the first match is stripped.
TITLE_PREFIXES_TO_REMOVE = [
    re.compile(r'^Cinema:\s*', re.IGNORECASE),
    re.compile(r'^Cine:\s*', re.IGNORECASE),
    re.compile(r'^Concerto?:\s*', re.IGNORECASE),
    re.compile(r'^Concierto:\s*', re.IGNORECASE),
    re.compile(r'^Teatro:\s*', re.IGNORECASE),
    re.compile(r'^Theater:\s*', re.IGNORECASE),
    re.compile(r'^Show:\s*', re.IGNORECASE),
    re.compile(r'^Espectáculo:\s*', re.IGNORECASE),
    re.compile(r'^Evento:\s*', re.IGNORECASE),
    re.compile(r'^Event:\s*', re.IGNORECASE),
]

# Titles matching any of these keep their prefix ("Concierto: Tributo a Queen").
TITLE_PATTERNS_TO_KEEP = [
    re.compile(p, re.IGNORECASE)
    for p in (r'tribute', r'tributo', r'homenaje', r'cover', r'sinfónico', r'symphonic', r'orquesta', r'orchestra')
]

FREE_PRICE_RE = re.compile(r'gratis|free', re.IGNORECASE)
PRICE_NUMBER_RE = re.compile(r'[\d.,]+')

EXTERNAL_ID_PATTERNS = [
    re.compile(r'/evento/([^/?]+)'),
    re.compile(r'/event/([^/?]+)'),
    re.compile(r'id=([^&]+)'),
    re.compile(r'/([^/]+)/?$'),
]

COMUNAS = [
    'Santiago', 'Providencia', 'Las Condes', 'Vitacura', 'Ñuñoa', 'La Reina',
    'Peñalolén', 'La Florida', 'Macul', 'San Miguel', 'San Joaquín', 'La Granja',
    'Lo Espejo', 'Pedro Aguirre Cerda', 'San Ramón', 'La Pintana', 'El Bosque',
    'La Cisterna', 'San Bernardo', 'Puente Alto', 'Maipú', 'Cerrillos', 'Estación Central',
    'Quinta Normal', 'Lo Prado', 'Pudahuel', 'Cerro Navia', 'Renca', 'Quilicura',
    'Colina', 'Lampa', 'Huechuraba', 'Conchalí', 'Independencia', 'Recoleta',
    'Viña del Mar', 'Valparaíso', 'Concón', 'Antofagasta', 'Temuco', 'Puerto Montt',
    'Punta Arenas', 'La Serena', 'Coquimbo', 'Arica', 'Iquique', 'Talca', 'Chillán',
    'Concepción', 'Talcahuano', 'Rancagua', 'Curicó', 'Osorno', 'Valdivia',
]


def clean_title(raw_title: Optional[str]) -> Optional[str]:
    """
    Removes a boilerplate prefix ("Teatro:", "Concierto:", ...) from a title.

    Titles that look like tributes, covers or orchestral shows are left intact,
    since the prefix is part of how those events are named. If stripping would
    leave nothing, the trimmed raw title is returned instead.
    """
    if not raw_title:
        return None

    trimmed = raw_title.strip()
    title = trimmed

    if not any(pattern.search(title) for pattern in TITLE_PATTERNS_TO_KEEP):
        for prefix in TITLE_PREFIXES_TO_REMOVE:
            if prefix.match(title):
                title = prefix.sub('', title, count=1)
                break

    return normalize_whitespace(title) or trimmed or None


def map_category(category_text: Optional[str]) -> Optional[str]:
    if not category_text:
        return None
    return CATEGORY_MAPPING.get(category_text.strip())


def _parse_price_number(token: str) -> Optional[int]:
    # "10.000" -> 10000, "1.500,50" -> 1500
    cleaned = token.replace('.', '').replace(',', '.', 1)
    integer_part = cleaned.split('.', 1)[0]
    if not integer_part.isdigit():
        return None
    return int(integer_part)


def parse_price(price_text: Optional[str]) -> ParsedPrice:
    if not price_text or not price_text.strip():
        return ParsedPrice()

    text = price_text.strip()

    if FREE_PRICE_RE.search(text):
        return ParsedPrice(text="Gratis", min=0, max=0)

    values = [v for v in (_parse_price_number(t) for t in PRICE_NUMBER_RE.findall(text)) if v is not None and v > 0]
    if not values:
        return ParsedPrice(text=text)

    return ParsedPrice(text=text, min=min(values), max=max(values))


def extract_external_id(url: Optional[str]) -> Optional[str]:
    """
    Site identifier of an event, taken from its URL.
    First matching pattern wins; a URL that matches nothing is its own id.
    """
    if not url:
        return url

    for pattern in EXTERNAL_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return url


def normalize_url(url: Optional[str], base_url: str) -> Optional[str]:
    if not url:
        return None
    if url.startswith('http'):
        return url
    if url.startswith('//'):
        return 'https:' + url
    return urljoin(base_url, url)


def extract_comuna(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lower_text = text.lower()
    for comuna in COMUNAS:
        if comuna.lower() in lower_text:
            return comuna
    return None


def join_location(*parts: Optional[str]) -> Optional[str]:
    present: List[str] = [p for p in parts if p]
    return ', '.join(present) or None
