"""Constants for the document crawler."""

# Keywords whose presence marks a page as worth keeping
DISCOVERY_KEYWORDS = [
    r"portrait\s+of\s+(?:a\s+)?graduate",
    r"graduate\s+profile",
    r"learner\s+profile",
    r"strategic\s+plan",
    r"strategic\s+priorities",
    r"community\s+compass",
    r"measure\s+what\s+matters",
    r"capstone",
    r"cornerstone",
]

PORTRAIT_KEYWORD_MARKERS = ["portrait", "graduate profile", "learner profile"]
STRATEGIC_KEYWORD_MARKERS = ["strategic"]
PORTRAIT_URL_MARKERS = ["portrait", "graduate"]
STRATEGIC_URL_MARKERS = ["strategic", "plan"]

# Link prioritization: one point per keyword found in the URL
URL_PRIORITY_KEYWORDS = [
    "portrait", "graduate", "strategic", "plan", "vision", "mission",
    "about", "district", "superintendent", "board", "leadership",
]
SHALLOW_PATH_MAX_SEGMENTS = 2

SKIP_LINK_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:")
BINARY_EXTENSIONS = (".pdf",)
PDF_MAGIC = b"%PDF"
PDF_MAGIC_WINDOW = 1024

# Tags whose text never belongs to the document body
NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "identity",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
}

BINARY_ACCEPT = "application/pdf,application/octet-stream;q=0.9,*/*;q=0.8"

# Extra headers for sites that answer plain clients with 403
FULL_BROWSER_HEADERS = {
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "cross-site",
    "Sec-Fetch-User": "?1",
}
REFERER_TEMPLATE = "https://www.google.com/search?q={host}"

# Max limits
MAX_EXTRACTED_LINKS = 200
MAX_INTERNAL_PAGES = 10
MAX_BINARY_LINKS = 10
MAX_DOCUMENT_CHARS = 100000
