import asyncio
from datetime import datetime

import httpx

from sitecorpus.models.document import AttemptStatus, DocumentCategory, DocumentType, UrlRole
from sitecorpus.services.crawler import extraction
from sitecorpus.services.crawler.extraction import extract, is_same_site, resolve_link
from sitecorpus.services.crawler.fetcher import Fetcher, fetch_retry_policy
from sitecorpus.services.crawler.keywords import categorize, detect_keywords
from sitecorpus.services.crawler.links import score_link, select_links
from sitecorpus.services.crawler.orchestrator import CrawlOrchestrator, content_hash
from sitecorpus.services.crawler.reprocess import reprocess_binary_documents
from sitecorpus.services.discovery.liveness import LivenessProber
from sitecorpus.services.discovery.models import DiscoveryTarget
from sitecorpus.services.discovery.waterfall import ALL_FAILED_MESSAGE, DiscoveryWaterfall
from sitecorpus.services.scoring.runner import ScoringRunner


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_fetch_reports_http_errors_without_retrying():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    async def run():
        async with _client(handler) as client:
            fetcher = Fetcher(client, retry_policy=fetch_retry_policy(max_attempts=2, backoff_seconds=0))
            return await fetcher.fetch("https://district.example.org/missing")

    result = asyncio.run(run())
    assert result.success is False
    assert result.status_code == 404
    assert result.error == "HTTP 404"
    assert len(calls) == 1


def test_fetch_retries_timeouts_then_gives_up():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("read timed out", request=request)

    async def run():
        async with _client(handler) as client:
            fetcher = Fetcher(client, retry_policy=fetch_retry_policy(max_attempts=2, backoff_seconds=0))
            return await fetcher.fetch("https://slow.example.org")

    result = asyncio.run(run())
    assert result.success is False
    assert result.timed_out is True
    assert result.error.startswith("Timeout")
    assert len(calls) == 2


def test_fetch_does_not_retry_certificate_errors():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed", request=request)

    async def run():
        async with _client(handler) as client:
            fetcher = Fetcher(client, retry_policy=fetch_retry_policy(max_attempts=3, backoff_seconds=0))
            return await fetcher.fetch("https://badcert.example.org")

    result = asyncio.run(run())
    assert result.success is False
    assert result.timed_out is False
    assert "CERTIFICATE" in result.error
    assert len(calls) == 1


def test_fetch_enforces_size_cap():
    def handler(request):
        return httpx.Response(200, content=b"x" * 100, headers={"content-type": "text/html"})

    async def run():
        async with _client(handler) as client:
            return await Fetcher(client, max_bytes=10).fetch("https://big.example.org")

    result = asyncio.run(run())
    assert result.success is False
    assert "exceeds" in result.error


def test_fetch_binary_and_browser_profile_headers():
    fetcher = Fetcher(httpx.AsyncClient(), user_agents=["UA-1", "UA-2"])
    binary = fetcher.build_headers("https://district.example.org/a.pdf", binary=True)
    assert binary["Accept"].startswith("application/pdf")
    assert binary["User-Agent"] in ("UA-1", "UA-2")
    browser = fetcher.build_headers("https://district.example.org", browser_profile=True)
    assert browser["User-Agent"] == "UA-1"
    assert browser["Sec-Fetch-Mode"] == "navigate"
    assert "district.example.org" in browser["Referer"]


PAGE = b"""
<html>
  <head><title> Example  Unified </title><style>.x { color: red }</style></head>
  <body>
    <script>var tracking = "strategic plan";</script>
    <h1>Welcome</h1>
    <p>Our   Strategic Plan sets strategic priorities.</p>
    <a href="/docs/Plan%202024.pdf#page=2">Plan</a>
    <a href="https://cdn.example.net/files/portrait.pdf">Portrait</a>
    <a href="/about">About</a>
    <a href="https://district.example.org/">Home</a>
    <a href="https://sub.district.example.org/board">Board</a>
    <a href="mailto:office@district.example.org">Mail</a>
    <a href="https://www.facebook.com/district">Facebook</a>
    <iframe src="/embeds/calendar.pdf"></iframe>
  </body>
</html>
"""


def test_extract_html_text_title_and_links():
    content = extract(PAGE, "html", "https://district.example.org/")
    assert content.success
    assert content.title == "Example Unified"
    assert "Our Strategic Plan sets strategic priorities." in content.text
    assert "tracking" not in content.text
    assert "color" not in content.text
    assert content.links.binary == [
        "https://district.example.org/docs/Plan%202024.pdf",
        "https://cdn.example.net/files/portrait.pdf",
    ]
    assert content.links.internal == [
        "https://district.example.org/about",
        "https://sub.district.example.org/board",
    ]
    assert content.links.embedded_binary == ["https://district.example.org/embeds/calendar.pdf"]


def test_extract_pdf_rejects_non_pdf_bytes():
    content = extract(b"<html>not a pdf</html>", "pdf", "https://district.example.org/a.pdf")
    assert content.success is False
    assert content.method == "pdf_parse"
    assert "%PDF" in content.error


def test_extract_pdf_uses_url_for_missing_title(monkeypatch):
    monkeypatch.setattr(extraction, "_read_pdf_text", lambda content: ("Graduate profile text", None))
    content = extract(b"%PDF-1.7 fake", "pdf", "https://district.example.org/docs/Board%20Goals.pdf")
    assert content.success
    assert content.text == "Graduate profile text"
    assert content.title == "Board Goals"


def test_extract_pdf_without_text_fails(monkeypatch):
    monkeypatch.setattr(extraction, "_read_pdf_text", lambda content: ("   ", None))
    content = extract(b"%PDF-1.7 fake", "pdf", "https://district.example.org/scan.pdf")
    assert content.success is False


def _pdf(text: bytes, title: bytes) -> bytes:
    """Single-page PDF with one Helvetica text run and an Info title."""
    stream = b"BT /F1 12 Tf 72 720 Td (" + text + b") Tj ET"
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R"
        b" /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Title (" + title + b") >>",
    ]
    body = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, obj in enumerate(objects, start=1):
        offsets.append(len(body))
        body += str(number).encode() + b" 0 obj\n" + obj + b"\nendobj\n"
    xref_at = len(body)
    body += b"xref\n0 " + str(len(objects) + 1).encode() + b"\n"
    body += b"0000000000 65535 f \n"
    for offset in offsets:
        body += ("%010d 00000 n \n" % offset).encode()
    body += b"trailer\n<< /Size " + str(len(objects) + 1).encode() + b" /Root 1 0 R /Info 6 0 R >>\n"
    body += b"startxref\n" + str(xref_at).encode() + b"\n%%EOF\n"
    return bytes(body)


def test_extract_pdf_reads_text_and_title():
    content = extract(
        _pdf(b"Portrait of a Graduate", b"Strategic Plan 2024"),
        "pdf",
        "https://district.example.org/docs/plan.pdf",
    )
    assert content.success
    assert content.method == "pdf_parse"
    assert "Portrait of a Graduate" in content.text
    assert content.title == "Strategic Plan 2024"


def test_extract_pdf_reports_truncated_file():
    truncated = _pdf(b"Portrait of a Graduate", b"Plan")[:60]
    content = extract(truncated, "pdf", "https://district.example.org/docs/plan.pdf")
    assert content.success is False
    assert content.method == "pdf_parse"
    assert content.error.startswith("PDF parse failed")


def test_extract_html_falls_back_to_utf8_for_unknown_charset():
    page = "<html><body><p>Café menu and Strategic Plan</p></body></html>".encode("utf-8")
    content = extract(page, "html", "https://district.example.org/", encoding="bogus-charset")
    assert content.success
    assert "Café menu" in content.text
    assert extraction.resolve_codec("bogus-charset") == "utf-8"
    assert extraction.resolve_codec(None) == "utf-8"
    assert extraction.resolve_codec("ISO-8859-1") == "iso8859-1"


def test_link_helpers():
    assert resolve_link("javascript:void(0)", "https://a.org") is None
    assert resolve_link("#top", "https://a.org") is None
    assert resolve_link("page?id=1#frag", "https://a.org/dir/") == "https://a.org/dir/page?id=1"
    assert is_same_site("https://www.a.org/x", "https://a.org")
    assert is_same_site("https://sub.a.org/x", "https://www.a.org")
    assert not is_same_site("https://nota.org", "https://a.org")


def test_detect_keywords_unique_in_order():
    text = "Our Portrait of a Graduate and strategic   plan. The STRATEGIC PLAN again, plus a capstone."
    assert detect_keywords(text) == ["portrait of a graduate", "strategic plan", "capstone"]
    assert detect_keywords("") == []


def test_categorize_prefers_keywords_over_url():
    assert categorize("https://d.org/news", ["portrait of a graduate", "strategic plan"]) == DocumentCategory.portrait_of_graduate
    assert categorize("https://d.org/portrait", ["strategic plan"]) == DocumentCategory.strategic_plan
    assert categorize("https://d.org/graduate-outcomes", []) == DocumentCategory.portrait_of_graduate
    assert categorize("https://d.org/plan-2030", []) == DocumentCategory.strategic_plan
    assert categorize("https://d.org/lunch-menu", []) == DocumentCategory.other


def test_select_links_by_score_then_page_order():
    urls = [
        "https://d.org/news/2024/03/lunch",
        "https://d.org/about",
        "https://d.org/strategic-plan",
        "https://d.org/board",
    ]
    assert score_link("https://d.org/strategic-plan") == 3
    assert score_link("https://d.org/news/2024/03/lunch") == 0
    assert select_links(urls, limit=2) == ["https://d.org/strategic-plan", "https://d.org/about"]
    assert select_links(urls, limit=10) == [
        "https://d.org/strategic-plan",
        "https://d.org/about",
        "https://d.org/board",
    ]
    assert "https://d.org/news/2024/03/lunch" not in select_links(urls, limit=10)
    assert "https://d.org/news/2024/03/lunch" in select_links(urls, limit=10, min_score=0)


HOMEPAGE = b"""
<html><head><title>Example Unified</title></head>
<body>
  <p>Welcome to Example Unified. Our Strategic Plan sets strategic priorities for every learner.</p>
  <a href="/docs/strategic-plan.pdf">Strategic Plan (PDF)</a>
  <a href="/about">About</a>
  <a href="/board">Board</a>
  <a href="/news/2024/03/item-1">News</a>
  <a href="https://www.facebook.com/exampleunified">Facebook</a>
</body></html>
"""

ABOUT = b"<html><body><h1>About our schools</h1><p>We hold listening sessions each spring.</p></body></html>"

PDF_TEXT = "Our Portrait of a Graduate describes capstone projects and performance tasks."


def _site(request):
    if request.url.host != "www.example-sd.org":
        raise httpx.ConnectError("unreachable", request=request)
    if request.method == "HEAD":
        return httpx.Response(200)
    path = request.url.path
    if path == "/":
        return httpx.Response(200, content=HOMEPAGE, headers={"content-type": "text/html; charset=utf-8"})
    if path == "/docs/strategic-plan.pdf":
        return httpx.Response(200, content=b"%PDF-1.4 fake", headers={"content-type": "application/pdf"})
    if path == "/about":
        return httpx.Response(200, content=ABOUT, headers={"content-type": "text/html"})
    return httpx.Response(404)


def _orchestrator(client, document_store, crawl_log, correction_store, live_hosts, embeddings=None):
    async def resolve(host):
        return host in live_hosts

    fetcher = Fetcher(client, retry_policy=fetch_retry_policy(max_attempts=1, backoff_seconds=0))
    waterfall = DiscoveryWaterfall(LivenessProber(client, resolve_host=resolve), fetcher)
    return CrawlOrchestrator(
        waterfall,
        fetcher,
        documents=document_store,
        crawl_log=crawl_log,
        corrections=correction_store,
        embeddings=embeddings,
        request_delay=0,
    )


def test_crawl_discovers_corrects_and_stores_documents(monkeypatch, document_store, crawl_log, correction_store, score_store):
    monkeypatch.setattr(extraction, "_read_pdf_text", lambda content: (PDF_TEXT, "Strategic Plan 2024"))
    target = DiscoveryTarget(
        entity_id="0600001", name="Example Unified", jurisdiction="CA", url_hints=["ww.example-sd"],
    )

    async def run():
        async with _client(_site) as client:
            orchestrator = _orchestrator(client, document_store, crawl_log, correction_store, {"www.example-sd.org"})
            summary = await orchestrator.run([target], batch_id="batch-1")
        scoring = await ScoringRunner(document_store, score_store).run(now=datetime.utcnow())
        return summary, scoring

    summary, scoring = asyncio.run(run())

    assert summary.succeeded == 1
    assert summary.documents == 3
    assert summary.by_strategy == {"url_fix": 1}

    docs = {row["url"]: row for row in document_store.for_entity("0600001")}
    homepage = docs["https://www.example-sd.org"]
    assert homepage["category"] == "strategic_plan"
    assert homepage["page_depth"] == 0
    assert homepage["content_hash"] == content_hash(homepage["extracted_text"])
    pdf = docs["https://www.example-sd.org/docs/strategic-plan.pdf"]
    assert pdf["document_type"] == DocumentType.pdf
    assert pdf["category"] == "portrait_of_graduate"
    assert pdf["title"] == "Strategic Plan 2024"
    assert docs["https://www.example-sd.org/about"]["category"] == "other"

    assert len(crawl_log.attempts) == 4
    assert [a.url_role for a in crawl_log.attempts] == [
        UrlRole.homepage, UrlRole.pdf_link, UrlRole.internal_link, UrlRole.internal_link,
    ]
    board = crawl_log.attempts[-1]
    assert board.status == AttemptStatus.failure
    assert board.http_status == 404
    assert all(a.batch_id == "batch-1" for a in crawl_log.attempts)
    assert crawl_log.attempts[0].keywords_found == ["strategic plan", "strategic priorities"]

    assert len(correction_store.records) == 1
    entity_id, old_url, discovery = correction_store.records[0]
    assert old_url == "https://ww.example-sd"
    assert discovery.url == "https://www.example-sd.org"
    assert discovery.details["entity_name"] == "Example Unified"

    assert scoring.processed == 1
    score = score_store.scores["0600001"]
    assert score.category_scores["readiness"] > 0
    assert score.tier.value == "tier1"


def test_crawl_is_idempotent_on_recrawl(monkeypatch, document_store, crawl_log, correction_store):
    monkeypatch.setattr(extraction, "_read_pdf_text", lambda content: (PDF_TEXT, None))
    target = DiscoveryTarget(entity_id="0600001", name="Example Unified", url_hints=["www.example-sd.org"])
    first_crawl = datetime(2024, 1, 1)
    second_crawl = datetime(2024, 2, 1)

    async def run():
        async with _client(_site) as client:
            orchestrator = _orchestrator(client, document_store, crawl_log, correction_store, {"www.example-sd.org"})
            document_store.clock = lambda: first_crawl
            await orchestrator.run([target])
            first = {url: row["content_hash"] for (_, url), row in document_store.rows.items()}
            document_store.clock = lambda: second_crawl
            await orchestrator.run([target])
            return first

    first = asyncio.run(run())
    second = {url: row["content_hash"] for (_, url), row in document_store.rows.items()}
    assert first == second
    assert len(document_store.rows) == 3
    assert correction_store.records == []
    for row in document_store.rows.values():
        assert row["discovered_at"] == first_crawl
        assert row["last_crawled_at"] == second_crawl


def test_recrawl_with_changed_content_updates_row_and_drops_chunks(
    document_store, crawl_log, correction_store, make_embedding_store,
):
    pages = {"/": b"<html><body><p>Our Strategic Plan guides every school.</p></body></html>"}

    def site(request):
        if request.url.host != "www.example-sd.org":
            raise httpx.ConnectError("unreachable", request=request)
        if request.method == "HEAD":
            return httpx.Response(200)
        if request.url.path in pages:
            return httpx.Response(200, content=pages[request.url.path], headers={"content-type": "text/html"})
        return httpx.Response(404)

    target = DiscoveryTarget(entity_id="0600001", name="Example Unified", url_hints=["www.example-sd.org"])
    embeddings = make_embedding_store()

    async def run():
        async with _client(site) as client:
            orchestrator = _orchestrator(
                client, document_store, crawl_log, correction_store, {"www.example-sd.org"}, embeddings=embeddings,
            )
            await orchestrator.run([target])
            before = dict(document_store.for_entity("0600001")[0])
            # Same content again: chunks stay
            await orchestrator.run([target])
            unchanged_deletes = list(embeddings.deleted)
            pages["/"] = b"<html><body><p>Our Portrait of a Graduate guides every school.</p></body></html>"
            await orchestrator.run([target])
            return before, unchanged_deletes

    before, unchanged_deletes = asyncio.run(run())
    rows = document_store.for_entity("0600001")
    assert len(rows) == 1
    after = rows[0]
    assert before["category"] == "strategic_plan"
    assert after["category"] == "portrait_of_graduate"
    assert "Portrait of a Graduate" in after["extracted_text"]
    assert after["content_hash"] == content_hash(after["extracted_text"])
    assert after["content_hash"] != before["content_hash"]
    assert after["id"] == before["id"]
    assert unchanged_deletes == []
    assert embeddings.deleted == [after["id"]]


def test_crawl_survives_unknown_charset(document_store, crawl_log, correction_store):
    def site(request):
        if request.url.host != "www.example-sd.org":
            raise httpx.ConnectError("unreachable", request=request)
        if request.method == "HEAD":
            return httpx.Response(200)
        if request.url.path == "/":
            return httpx.Response(
                200, content=HOMEPAGE, headers={"content-type": "text/html; charset=bogus-charset"},
            )
        return httpx.Response(404)

    target = DiscoveryTarget(entity_id="e1", name="Example Unified", url_hints=["www.example-sd.org"])

    async def run():
        async with _client(site) as client:
            orchestrator = _orchestrator(client, document_store, crawl_log, correction_store, {"www.example-sd.org"})
            return await orchestrator.run([target])

    summary = asyncio.run(run())
    assert summary.succeeded == 1
    homepage = crawl_log.for_role(UrlRole.homepage)
    assert len(homepage) == 1
    assert homepage[0].status == AttemptStatus.success
    assert len(crawl_log.for_role(UrlRole.internal_link)) >= 1
    docs = {row["url"]: row for row in document_store.for_entity("e1")}
    assert "Strategic Plan" in docs["https://www.example-sd.org"]["extracted_text"]


def test_crawl_logs_single_failure_when_discovery_fails(document_store, crawl_log, correction_store):
    targets = [
        DiscoveryTarget(entity_id="dead-1", name="Gone District", url_hints=["gone.example.org"]),
        DiscoveryTarget(entity_id="dead-2", name="", url_hints=[]),
    ]

    async def run():
        async with _client(_site) as client:
            orchestrator = _orchestrator(client, document_store, crawl_log, correction_store, set())
            return await orchestrator.run(targets)

    summary = asyncio.run(run())
    assert summary.failed == 2
    assert summary.documents == 0
    assert len(crawl_log.attempts) == 2
    by_entity = {a.entity_id: a for a in crawl_log.attempts}
    first, second = by_entity["dead-1"], by_entity["dead-2"]
    assert first.url == "gone.example.org"
    assert first.url_role == UrlRole.homepage
    assert first.status == AttemptStatus.failure
    assert first.error_message == ALL_FAILED_MESSAGE
    assert first.response_time_ms == 0
    assert second.url == ""
    assert document_store.rows == {}


def test_crawl_skips_remaining_entities_after_stop(document_store, crawl_log, correction_store):
    targets = [DiscoveryTarget(entity_id=f"e{i}", name="") for i in range(3)]

    async def run():
        async with _client(_site) as client:
            orchestrator = _orchestrator(client, document_store, crawl_log, correction_store, set())
            orchestrator.concurrency = 1
            orchestrator.stop_event = asyncio.Event()
            orchestrator.stop_event.set()
            return await orchestrator.run(targets)

    summary = asyncio.run(run())
    assert summary.skipped == 3
    assert crawl_log.attempts == []


def test_reprocess_binary_documents_stores_recovered_text(monkeypatch, document_store, crawl_log, correction_store):
    monkeypatch.setattr(extraction, "_read_pdf_text", lambda content: (PDF_TEXT, None))
    document_store.failed_binaries = [("0600001", "https://www.example-sd.org/docs/strategic-plan.pdf")]

    async def run():
        async with _client(_site) as client:
            orchestrator = _orchestrator(client, document_store, crawl_log, correction_store, set())
            return await reprocess_binary_documents(orchestrator, document_store, request_delay=0)

    summary = asyncio.run(run())
    assert summary.succeeded == 1
    assert summary.documents == 1
    row = document_store.rows[("0600001", "https://www.example-sd.org/docs/strategic-plan.pdf")]
    assert row["category"] == "portrait_of_graduate"
    assert row["title"] == "strategic-plan"
    assert crawl_log.attempts[0].url_role == UrlRole.pdf_link
    assert crawl_log.attempts[0].status == AttemptStatus.success
