"""
Text normalization for matching Strapi free-text labels against canonical names.

Strapi stores headquarters and role names as hand-typed text, so the same
headquarter shows up under several spellings. Labels are reduced to a base
form (trimmed, lower-cased, accents stripped) and then passed through a
per-domain alias table of known variants.
"""

import unicodedata
from types import MappingProxyType
from typing import Literal, Mapping, Optional

Domain = Literal["headquarters", "roles"]

HEADQUARTERS_ALIASES: Mapping[str, str] = MappingProxyType({
    "konsejo de direccion": "konsejo akademiko",
    "consejo de direccion": "konsejo akademiko",
    "cdmx": "ciudad de mexico",
    "valencia ruzafa/ribera alta": "valencia nomada upv",
    "valencia": "valencia nomada upv",
    "webinarseptiembre": "webinar septiembre",
    "webinar-septiembre": "webinar septiembre",
    "webinarfeb": "webinar marzo",
    "webinar feb": "webinar marzo",
    "webinar febrero": "webinar marzo",
    "webinar-marzo": "webinar marzo",
})

ROLES_ALIASES: Mapping[str, str] = MappingProxyType({
    "equipo de comunicacion": "director/a de comunicacion local",
    "equipo comunicacion": "director/a de comunicacion local",
    "comunicacion": "director/a de comunicacion local",
    "otro": "asistente a la direccion",
    "konsejo de direccion": "miembro del konsejo de direccion",
    "consejo de direccion": "miembro del konsejo de direccion",
})

_ALIASES: Mapping[str, Mapping[str, str]] = MappingProxyType({
    "headquarters": HEADQUARTERS_ALIASES,
    "roles": ROLES_ALIASES,
})


def normalize_text(text: Optional[str]) -> str:
    """Trim, lower-case and strip combining marks (NFD). None becomes ''."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip()


def normalize_label(text: Optional[str], domain: Domain) -> str:
    """Base normalization followed by the domain alias table."""
    normalized = normalize_text(text)
    return _ALIASES[domain].get(normalized, normalized)


def normalize_headquarters(text: Optional[str]) -> str:
    return normalize_label(text, "headquarters")


def normalize_role(text: Optional[str]) -> str:
    return normalize_label(text, "roles")
