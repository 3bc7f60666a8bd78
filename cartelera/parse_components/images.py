"""
Image candidate ranking.

Candidates carry a provenance ``priority`` assigned during extraction
(1 = og:image meta tag, 2 = event image from the site's CDN, 3 = gallery or
generic fallback, 4 = whole-page scan). Lower priority wins; pixel area breaks
ties. Placeholders, logos and social icons are never selected.
"""
import re
from typing import Dict, Iterable, List, Optional

from cartelera.schema_adapter import ImageCandidate

PLACEHOLDER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r'placeholder', r'no-image', r'default-image', r'fallback', r'loading', r'spinner',
        r'grey\.gif', r'blank\.gif', r'1x1', r'pixel\.gif', r'spacer',
        r'ico-ticket', r'landing-2021', r'logo', r'facebook\.svg', r'twitter\.svg',
    )
]


def is_placeholder_image(url: Optional[str]) -> bool:
    if not url or url.startswith('data:'):
        return True
    return any(pattern.search(url) for pattern in PLACEHOLDER_PATTERNS)


def parse_srcset(srcset: Optional[str]) -> List[Dict]:
    """Splits a srcset attribute into ``{"url", "width", "density"}`` entries."""
    if not srcset:
        return []

    entries = []
    for entry in srcset.split(','):
        parts = entry.strip().split()
        if not parts:
            continue
        descriptor = parts[1] if len(parts) > 1 else '1x'
        width = None
        density = 1.0
        try:
            if descriptor.endswith('w'):
                width = int(descriptor[:-1])
            elif descriptor.endswith('x'):
                density = float(descriptor[:-1])
        except ValueError:
            pass
        entries.append({"url": parts[0], "width": width, "density": density})
    return entries


def is_high_quality_image(candidate: ImageCandidate, min_width: int = 400, min_height: int = 300) -> bool:
    if not candidate.width or not candidate.height:
        return False
    return candidate.width >= min_width and candidate.height >= min_height


def rank_images(candidates: Iterable[ImageCandidate]) -> List[ImageCandidate]:
    """Drops placeholders and duplicate URLs, then orders by (priority asc, area desc)."""
    valid = [c for c in candidates if not is_placeholder_image(c.url)]
    # sorted() is stable, so equal candidates keep page order
    valid.sort(key=lambda c: (c.priority, -c.area))

    seen = set()
    ranked: List[ImageCandidate] = []
    for candidate in valid:
        if candidate.url not in seen:
            seen.add(candidate.url)
            ranked.append(candidate)
    return ranked


def select_best_image(candidates: Iterable[ImageCandidate]) -> Optional[ImageCandidate]:
    ranked = rank_images(candidates)
    return ranked[0] if ranked else None
