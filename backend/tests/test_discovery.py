import asyncio

import httpx

from sitecorpus.services.crawler.fetcher import Fetcher, fetch_retry_policy
from sitecorpus.services.discovery.liveness import LivenessProber
from sitecorpus.services.discovery.models import DiscoveryTarget
from sitecorpus.services.discovery.search import WebSearch, build_query, parse_result_links, pick_result
from sitecorpus.services.discovery.waterfall import DiscoveryWaterfall, last_resort_strategy, needs_correction
from sitecorpus.services.rate_limit import RateLimiter


def _resolver(live_hosts):
    calls = []

    async def resolve(host: str) -> bool:
        calls.append(host)
        return host in live_hosts

    resolve.calls = calls
    return resolve


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _fetcher(client) -> Fetcher:
    return Fetcher(client, retry_policy=fetch_retry_policy(max_attempts=1, backoff_seconds=0))


def test_probe_requires_dns_and_caches_answers():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    async def run():
        resolver = _resolver({"live.example.org"})
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=resolver)
            dead = await prober.probe("https://dead.example.org")
            again = await prober.probe("https://dead.example.org/about")
            live = await prober.probe("https://live.example.org")
        return resolver, dead, again, live

    resolver, dead, again, live = asyncio.run(run())
    assert dead.live is False
    assert dead.error == "DNS resolution failed"
    assert again.live is False
    assert resolver.calls == ["dead.example.org", "live.example.org"]
    assert live.live is True
    assert live.status_code == 200
    assert [r.method for r in requests] == ["HEAD"]


def test_probe_treats_4xx_as_dead_and_follows_one_redirect():
    def handler(request):
        if request.url.path == "/gone":
            return httpx.Response(404)
        if request.url.path == "/old":
            return httpx.Response(301, headers={"location": "/new"})
        if request.url.path == "/broken":
            return httpx.Response(302, headers={"location": "/gone"})
        return httpx.Response(200)

    async def run():
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=_resolver({"site.example.org"}))
            return (
                await prober.probe("https://site.example.org/gone"),
                await prober.probe("https://site.example.org/old"),
                await prober.probe("https://site.example.org/broken"),
            )

    gone, moved, broken = asyncio.run(run())
    assert gone.live is False and gone.status_code == 404
    assert moved.live is True
    assert moved.url == "https://site.example.org/new"
    assert moved.redirected_from == "https://site.example.org/old"
    assert broken.live is False


def test_first_live_stops_at_first_live_candidate():
    probed = []

    def handler(request):
        probed.append(request.url.host)
        return httpx.Response(200)

    async def run():
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=_resolver({"b.example.org", "c.example.org"}))
            return await prober.first_live(
                ["https://a.example.org", "https://b.example.org", "https://c.example.org"]
            )

    result = asyncio.run(run())
    assert result.url == "https://b.example.org"
    assert probed == ["b.example.org"]


def test_waterfall_repairs_typo_before_other_strategies():
    def handler(request):
        return httpx.Response(200)

    target = DiscoveryTarget(
        entity_id="0600001",
        name="Example Unified",
        jurisdiction="CA",
        url_hints=["ww.example-sd"],
        emails=["office@example.k12.ca.us"],
    )

    async def run():
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=_resolver({"www.example-sd.org", "example.k12.ca.us"}))
            return await DiscoveryWaterfall(prober, _fetcher(client)).discover(target)

    discovery = asyncio.run(run())
    assert discovery.url == "https://www.example-sd.org"
    assert discovery.strategy == "url_fix"
    assert discovery.confidence == 0.85
    assert needs_correction(discovery.url, target.all_hints)


def test_waterfall_falls_through_to_email_then_patterns():
    def handler(request):
        return httpx.Response(200)

    async def run(live_hosts, emails):
        target = DiscoveryTarget(
            entity_id="e1", name="Riverdale School District", jurisdiction="NY",
            url_hints=["https://closed.example.org"], emails=emails,
        )
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=_resolver(live_hosts))
            return await DiscoveryWaterfall(prober, _fetcher(client)).discover(target)

    by_email = asyncio.run(run({"www.riverdale.k12.ny.us"}, ["clerk@mail.riverdale.k12.ny.us"]))
    assert by_email.strategy == "email_domain"
    assert by_email.url == "https://www.riverdale.k12.ny.us"
    assert by_email.confidence == 0.90

    by_pattern = asyncio.run(run({"www.riverdaleboe.org"}, ["someone@gmail.com"]))
    assert by_pattern.strategy == "pattern_match"
    assert by_pattern.url == "https://www.riverdaleboe.org"


def test_waterfall_cross_reference_uses_secondary_hint():
    def handler(request):
        return httpx.Response(200)

    target = DiscoveryTarget(
        entity_id="e2", name="Zzq", url_hints=["https://primary.example.org", "secondary.example.org"],
    )

    async def run():
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=_resolver({"www.secondary.example.org"}))
            return await DiscoveryWaterfall(prober, _fetcher(client)).discover(target)

    discovery = asyncio.run(run())
    assert discovery.strategy == "cross_reference"
    assert discovery.url == "https://www.secondary.example.org"


def test_waterfall_last_resort_uses_long_timeout_fetch():
    seen_timeouts = []

    def handler(request):
        seen_timeouts.append(request.extensions.get("timeout", {}).get("read"))
        return httpx.Response(200, html="<html><body>Slow district site</body></html>")

    target = DiscoveryTarget(
        entity_id="e3", name="", url_hints=[],
        last_failed_url="https://slow.example.org", last_error="Timeout: ReadTimeout",
    )

    async def run():
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=_resolver(set()))
            waterfall = DiscoveryWaterfall(prober, _fetcher(client), long_timeout=45.0)
            return await waterfall.discover(target)

    discovery = asyncio.run(run())
    assert discovery.strategy == "long_timeout"
    assert discovery.url == "https://slow.example.org"
    assert discovery.fetched is not None and discovery.fetched.success
    assert seen_timeouts == [45.0]


def test_waterfall_returns_none_when_everything_fails():
    def handler(request):
        return httpx.Response(500)

    target = DiscoveryTarget(entity_id="e4", name="Nowhere", jurisdiction="CA", url_hints=["nowhere.example"])

    async def run():
        async with _client(handler) as client:
            prober = LivenessProber(client, resolve_host=_resolver(set()))
            return await DiscoveryWaterfall(prober, _fetcher(client)).discover(target)

    assert asyncio.run(run()) is None


def test_last_resort_strategy_by_error_text():
    assert last_resort_strategy("Timeout: ConnectTimeout") == "long_timeout"
    assert last_resort_strategy("[SSL: CERTIFICATE_VERIFY_FAILED]") == "http_fallback"
    assert last_resort_strategy("HTTP 403") == "browser_headers"
    assert last_resort_strategy("HTTP 500") is None
    assert last_resort_strategy(None) is None


SEARCH_HTML = """
<html><body>
  <div class="result"><a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.facebook.com%2Friverdale&rut=1">FB</a></div>
  <div class="result"><a class="result__a" href="https://www.greatschools.org/ny/riverdale">Ratings</a></div>
  <div class="result"><a class="result__a" href="https://riverdale-news.example.com/story">News</a></div>
  <div class="result"><a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.riverdaleschools.org%2Fabout">Official</a></div>
</body></html>
"""


def test_parse_result_links_unwraps_redirects():
    links = parse_result_links(SEARCH_HTML)
    assert links == [
        "https://www.facebook.com/riverdale",
        "https://www.greatschools.org/ny/riverdale",
        "https://riverdale-news.example.com/story",
        "https://www.riverdaleschools.org/about",
    ]


def test_pick_result_skips_blacklist_and_prefers_school_hosts():
    assert pick_result(parse_result_links(SEARCH_HTML)) == "https://www.riverdaleschools.org"
    assert pick_result(["https://www.facebook.com/x"]) is None
    assert pick_result(["https://plain.example.com/page"]) == "https://plain.example.com"


def test_build_query_quotes_name():
    assert build_query("Riverdale", "NY") == '"Riverdale" NY school district official website'


class _FakeCache:
    def __init__(self):
        self.values = {}

    async def get_json(self, namespace, payload):
        return self.values.get((namespace, payload))

    async def set_json(self, namespace, payload, value, ttl_seconds):
        self.values[(namespace, payload)] = value


def test_web_search_caches_results():
    calls = []

    def handler(request):
        calls.append(request.url.params.get("q"))
        return httpx.Response(200, html=SEARCH_HTML)

    async def run():
        cache = _FakeCache()
        async with _client(handler) as client:
            search = WebSearch(client, RateLimiter(0), cache=cache)
            first = await search.find_origin("Riverdale", "NY")
            second = await search.find_origin("Riverdale", "NY")
        return first, second

    first, second = asyncio.run(run())
    assert first == second == "https://www.riverdaleschools.org"
    assert len(calls) == 1


def test_web_search_failure_returns_no_links():
    def handler(request):
        return httpx.Response(503)

    async def run():
        async with _client(handler) as client:
            return await WebSearch(client, RateLimiter(0)).search("anything")

    assert asyncio.run(run()) == []
