"""Constants for URL discovery."""

# Placeholder values loaders store when a registry has no website
PLACEHOLDER_VALUES = {"n/a", "na", "n", "none", "null", "-"}

# Bare state-level k12 hosts that registries record instead of a district site
PLACEHOLDER_HOST_PATTERN = r"^(?:www\.)?k12\.[a-z]{2}\.us$"

TLD_GUESSES = [".org", ".com"]

# Personal-mail providers whose domain says nothing about the entity
GENERIC_EMAIL_DOMAINS = {
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "aol.com",
    "icloud.com", "live.com", "msn.com", "comcast.net", "att.net",
    "charter.net", "cox.net", "earthlink.net", "sbcglobal.net", "verizon.net",
    "bellsouth.net", "windstream.net", "centurytel.net", "suddenlink.net",
    "frontier.com", "twc.com", "cableone.net", "mac.com", "me.com",
    "protonmail.com", "proton.me", "zoho.com",
}

# Mail-subsystem subdomains stripped from contact-email domains
MAIL_SUBDOMAIN_PREFIXES = [
    "mail.", "email.", "smtp.", "mx.", "exchange.", "owa.", "webmail.", "outlook.",
]

# Removed from entity names before building hostname patterns (order matters)
NAME_STOPWORDS = [
    "school district", "unified", "independent", "public schools", "county",
    "city", "regional", "consolidated", "area", "parish", "township",
    "borough", "community", "central", "joint",
]

# Jurisdictions whose districts conventionally use a board-of-education host
BOE_JURISDICTIONS = {"NY", "NJ", "CT", "MA", "PA"}

SEARCH_QUERY_QUALIFIER = "school district official website"

SEARCH_BLACKLIST = [
    "facebook", "twitter", "linkedin", "youtube", "yelp", "niche",
    "greatschools.org", "usnews", "wikipedia", "indeed", "glassdoor",
    "salary.com", "ziprecruiter",
]

# Result URLs that look like a school system's own site
SEARCH_PREFERRED_PATTERNS = [
    ".k12.", "schools.", "school.", ".edu", "sd.org", "isd.", "usd.",
    "district", "boe.", ".us/", "ps.org",
]

# Confidence recorded with a URL correction, per winning strategy
STRATEGY_CONFIDENCE = {
    "url_fix": 0.85,
    "cross_reference": 0.85,
    "email_domain": 0.90,
    "pattern_match": 0.85,
    "web_search": 0.80,
    "long_timeout": 0.85,
    "http_fallback": 0.85,
    "browser_headers": 0.85,
}

TIMEOUT_MARKERS = ["timeout", "etimedout", "timed out"]
TLS_MARKERS = ["ssl", "cert", "tls"]
FORBIDDEN_MARKERS = ["403", "forbidden"]
