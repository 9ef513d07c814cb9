"""Hostname candidates from entity names and contact-email domains."""

import re
from typing import Iterable, List, Optional

from .constants import (
    BOE_JURISDICTIONS,
    GENERIC_EMAIL_DOMAINS,
    MAIL_SUBDOMAIN_PREFIXES,
    NAME_STOPWORDS,
)
from .normalize import dedupe_urls

_STOPWORD_RES = [re.compile(rf"\b{re.escape(word)}\b") for word in NAME_STOPWORDS]


def clean_entity_name(name: Optional[str]) -> str:
    """Reduce an entity name to the token used in hostnames ("Example Unified" -> "example")."""
    words = _name_words(name)
    return "".join(words)


def _name_words(name: Optional[str]) -> List[str]:
    value = str(name or "").lower()
    for pattern in _STOPWORD_RES:
        value = pattern.sub(" ", value)
    value = re.sub(r"\bschools\s*$", " ", value.strip())
    value = re.sub(r"[^a-z0-9\s]", "", value)
    return value.split()


def pattern_candidates(name: Optional[str], jurisdiction: Optional[str]) -> List[str]:
    """Ranked, deduplicated URL guesses built from naming conventions."""
    words = _name_words(name)
    if not words:
        return []
    joined = "".join(words)
    hyphenated = "-".join(words)
    first = words[0]
    state = str(jurisdiction or "").strip().lower()

    hosts: List[str] = []
    if state:
        hosts.extend([f"www.{joined}.k12.{state}.us", f"{joined}.k12.{state}.us"])
        if hyphenated != joined:
            hosts.append(f"www.{hyphenated}.k12.{state}.us")

    hosts.extend([
        f"www.{joined}schools.org",
        f"www.{joined}schools.com",
        f"{joined}schools.org",
        f"www.{joined}schools.net",
    ])
    hosts.extend(f"www.{joined}{tld}" for tld in (".org", ".com", ".net", ".us"))
    hosts.extend([f"www.{joined}sd.org", f"{joined}sd.org", f"www.{joined}ps.org"])

    upper_state = state.upper()
    if upper_state == "TX":
        hosts.extend(f"www.{joined}isd{tld}" for tld in (".org", ".net", ".com"))
    elif upper_state == "GA":
        hosts.extend([f"www.{joined}county.schoolinsites.com", f"www.{joined}.schoolinsites.com"])
    elif upper_state in BOE_JURISDICTIONS:
        hosts.append(f"www.{joined}boe.org")

    hosts.append(f"www.{joined}district.org")

    if len(first) >= 4 and first != joined:
        hosts.append(f"www.{first}schools.org")
        if state:
            hosts.extend([f"www.{first}.k12.{state}.us", f"{first}.k12.{state}.us"])

    return dedupe_urls([f"https://{host}" for host in hosts])


def _email_domain(email: Optional[str]) -> str:
    value = str(email or "").strip().lower()
    if "@" not in value:
        return ""
    return value.rsplit("@", 1)[1].strip().strip(".")


def email_candidates(emails: Iterable[Optional[str]]) -> List[str]:
    """Site guesses from institutional contact-email domains."""
    candidates: List[str] = []
    for email in emails:
        domain = _email_domain(email)
        if not domain or "." not in domain or domain in GENERIC_EMAIL_DOMAINS:
            continue
        base = domain
        for prefix in MAIL_SUBDOMAIN_PREFIXES:
            if base.startswith(prefix):
                base = base[len(prefix):]
                break
        candidates.extend([f"https://{base}", f"https://www.{base}"])
        if base != domain:
            candidates.extend([f"https://{domain}", f"https://www.{domain}"])
    return dedupe_urls(candidates)
