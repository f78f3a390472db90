"""
Chronologie: parsing de la reponse du modele et normalisation locale des dates.

Chaque date est revalidee en YYYY-MM-DD. Quand une conversion a lieu, le texte
de l'evenement recoit le suffixe " [Original: ...]". Une date non reconnue est
conservee telle quelle, l'evenement n'est jamais abandonne.

Formats reconnus:
    - ISO (2024-08-13, 2024-08-13T10:00:00)
    - numeriques regionaux (08/13/2024, 13.08.2024, 2024/08/13)
    - mois en toutes lettres (August 13, 2024 / 13 Aug 2024 / 13 أغسطس 2024)
    - chiffres arabes-indiens (١٣/٠٨/٢٠٢٤)
    - calendrier hegirien tabulaire (1445-09-01 AH, 1/9/1445 هـ)
    - expressions relatives (today, yesterday, 3 days ago, in 2 weeks)
"""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from casefile.common.errors import TimelineParseFailure
from casefile.ingestion.models import TimelineEvent

logger = logging.getLogger(__name__)

_ARABIC_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹", "01234567890123456789")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_ISO_DATETIME = re.compile(r"^(\d{4})-(\d{2})-(\d{2})[T ]\d{2}:\d{2}")
_YEAR_FIRST = re.compile(r"^(\d{4})[/.\-](\d{1,2})[/.\-](\d{1,2})$")
_NUMERIC = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2}|\d{4})$")

_HIJRI_SUFFIX = r"\s*(?:AH|A\.H\.?|هـ|ه)\.?$"
_HIJRI_YEAR_FIRST = re.compile(r"^(\d{3,4})[/.\-](\d{1,2})[/.\-](\d{1,2})" + _HIJRI_SUFFIX, re.IGNORECASE)
_HIJRI_DAY_FIRST = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{3,4})" + _HIJRI_SUFFIX, re.IGNORECASE)

_RELATIVE_AGO = re.compile(r"^(\d+)\s+(day|week|month|year)s?\s+ago$", re.IGNORECASE)
_RELATIVE_IN = re.compile(r"^in\s+(\d+)\s+(day|week|month|year)s?$", re.IGNORECASE)
_RELATIVE_WORDS = {
    "today": 0,
    "yesterday": -1,
    "tomorrow": 1,
    "اليوم": 0,
    "أمس": -1,
    "امس": -1,
    "البارحة": -1,
    "غدا": 1,
    "غداً": 1,
}

# Noms de mois gregoriens en arabe (usage Moyen-Orient et Maghreb)
_ARABIC_MONTHS = {
    "يناير": "January", "كانون الثاني": "January", "جانفي": "January",
    "فبراير": "February", "شباط": "February", "فيفري": "February",
    "مارس": "March", "آذار": "March",
    "أبريل": "April", "ابريل": "April", "نيسان": "April", "أفريل": "April",
    "مايو": "May", "أيار": "May", "ماي": "May",
    "يونيو": "June", "حزيران": "June", "جوان": "June",
    "يوليو": "July", "تموز": "July", "جويلية": "July",
    "أغسطس": "August", "اغسطس": "August", "آب": "August", "أوت": "August",
    "سبتمبر": "September", "أيلول": "September",
    "أكتوبر": "October", "اكتوبر": "October", "تشرين الأول": "October",
    "نوفمبر": "November", "تشرين الثاني": "November",
    "ديسمبر": "December", "كانون الأول": "December",
}

# Jour julien du 1er Muharram an 1 (calendrier hegirien civil)
_ISLAMIC_EPOCH_JDN = 1948440
# date.fromordinal(1) == 0001-01-01 == JDN 1721426
_ORDINAL_JDN_OFFSET = 1721425


def hijri_to_gregorian(year: int, month: int, day: int) -> date:
    """Conversion arithmetique (calendrier tabulaire), a +/- 1 jour du calendrier observe."""
    if not (1 <= month <= 12 and 1 <= day <= 30 and year >= 1):
        raise ValueError(f"invalid Hijri date {year}-{month}-{day}")
    jdn = (
        day
        + math.ceil(29.5 * (month - 1))
        + (year - 1) * 354
        + (3 + 11 * year) // 30
        + _ISLAMIC_EPOCH_JDN
        - 1
    )
    return date.fromordinal(jdn - _ORDINAL_JDN_OFFSET)


def _expand_year(year: int) -> int:
    if year >= 100:
        return year
    return 2000 + year if year <= 69 else 1900 + year


def _numeric_date(first: int, second: int, year: int, dayfirst: bool) -> Optional[date]:
    """Mois en premier sauf si une composante > 12 l'impose, ou si dayfirst est demande."""
    year = _expand_year(year)
    if first > 12 and second <= 12:
        day, month = first, second
    elif second > 12 and first <= 12:
        month, day = first, second
    elif dayfirst:
        day, month = first, second
    else:
        month, day = first, second
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _relative_date(text: str, reference: date) -> Optional[date]:
    lowered = text.lower()
    if lowered in _RELATIVE_WORDS:
        return reference + relativedelta(days=_RELATIVE_WORDS[lowered])

    for pattern, sign in ((_RELATIVE_AGO, -1), (_RELATIVE_IN, 1)):
        match = pattern.match(lowered)
        if match:
            amount = int(match.group(1)) * sign
            unit = match.group(2).lower()
            return reference + relativedelta(**{f"{unit}s": amount})
    return None


def _written_date(text: str, dayfirst: bool) -> Optional[date]:
    """Mois en toutes lettres via dateutil; la date doit etre complete (jour, mois, annee)."""
    for arabic, english in _ARABIC_MONTHS.items():
        if arabic in text:
            text = text.replace(arabic, f" {english} ")
    if not re.search(r"[A-Za-z]", text):
        return None

    try:
        first = date_parser.parse(text, dayfirst=dayfirst, default=datetime(1904, 1, 1))
        second = date_parser.parse(text, dayfirst=dayfirst, default=datetime(1908, 2, 2))
    except (ValueError, OverflowError):
        return None
    # Composante absente du texte: les deux valeurs par defaut divergent
    if first.date() != second.date():
        return None
    return first.date()


def normalize_date(
    raw: str,
    reference_date: Optional[date] = None,
    dayfirst: bool = False,
) -> Tuple[str, bool]:
    """
    Normalise une date en YYYY-MM-DD.

    Returns:
        (date, convertie) - la date d'entree inchangee et False si non reconnue
        ou deja au format ISO.
    """
    original = (raw or "").strip()
    if not original:
        return raw, False

    text = original.translate(_ARABIC_DIGITS)
    reference = reference_date or date.today()

    match = _ISO_DATE.match(text)
    if match:
        try:
            date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return raw, False
        return text, text != original

    resolved: Optional[date] = None

    match = _ISO_DATETIME.match(text)
    if match:
        try:
            resolved = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            resolved = None

    if resolved is None:
        match = _HIJRI_YEAR_FIRST.match(text) or _HIJRI_DAY_FIRST.match(text)
        if match:
            if match.re is _HIJRI_YEAR_FIRST:
                year, month, day = (int(g) for g in match.groups())
            else:
                day, month, year = (int(g) for g in match.groups())
            try:
                resolved = hijri_to_gregorian(year, month, day)
            except ValueError:
                resolved = None

    if resolved is None:
        resolved = _relative_date(text, reference)

    if resolved is None:
        match = _YEAR_FIRST.match(text)
        if match:
            try:
                resolved = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            except ValueError:
                resolved = None

    if resolved is None:
        match = _NUMERIC.match(text)
        if match:
            resolved = _numeric_date(int(match.group(1)), int(match.group(2)), int(match.group(3)), dayfirst)

    if resolved is None:
        resolved = _written_date(text, dayfirst)

    if resolved is None:
        logger.debug(f"[Timeline] Unparsable date kept as is: {original!r}")
        return raw, False
    return resolved.isoformat(), True


def normalize_timeline(
    items: List[Dict[str, Any]],
    reference_date: Optional[date] = None,
    dayfirst: bool = False,
) -> List[TimelineEvent]:
    """Normalise chaque evenement; les elements sans texte d'evenement sont ignores."""
    events: List[TimelineEvent] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        event_text = str(item.get("event") or "").strip()
        if not event_text:
            continue
        raw_date = str(item.get("date") or "").strip()

        normalized, converted = normalize_date(raw_date, reference_date, dayfirst)
        if converted:
            event_text = f"{event_text} [Original: {raw_date}]"
        events.append(TimelineEvent(date=normalized, event=event_text))
    return events


def parse_timeline_response(raw: str) -> List[Dict[str, Any]]:
    """
    Extrait le tableau JSON de la reponse (entre le premier '[' et le dernier ']').

    Raises:
        TimelineParseFailure: pas de tableau JSON valide
    """
    text = raw or ""
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end < start:
        raise TimelineParseFailure("AI did not return a JSON array for the timeline")
    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError as exc:
        raise TimelineParseFailure(f"Failed to parse timeline JSON: {exc}") from exc
    if not isinstance(parsed, list):
        raise TimelineParseFailure("Timeline JSON is not an array")
    return parsed


__all__ = [
    "normalize_date",
    "normalize_timeline",
    "parse_timeline_response",
    "hijri_to_gregorian",
]
