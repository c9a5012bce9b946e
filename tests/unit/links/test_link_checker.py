"""Tests for URL extraction and LinkChecker probing."""

import asyncio

import httpx
import pytest

from lomad.links.link_checker import (
    LinkChecker,
    ProbeResult,
    ProbeStatus,
    extract_urls,
)


def make_checker(handler, **kwargs) -> LinkChecker:
    return LinkChecker(transport=httpx.MockTransport(handler), **kwargs)


def routes(table):
    """Build a handler answering HEAD requests from ``{url: response}``."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "HEAD"
        answer = table[str(request.url)]
        if isinstance(answer, Exception):
            raise answer
        return answer

    return handler


class TestExtractUrls:
    def test_urls_in_order(self):
        scan = extract_urls("see https://a.example/x and http://b.example")

        assert [m.url for m in scan] == ["https://a.example/x", "http://b.example"]

    def test_positions_and_duplicates(self):
        text = "http://a.example http://a.example"

        assert list(extract_urls(text)) == [
            ("http://a.example", 0),
            ("http://a.example", 17),
        ]

    def test_scan_can_be_iterated_twice(self):
        scan = extract_urls("x https://a.example y")

        assert list(scan) == list(scan)

    def test_trailing_punctuation_and_quotes_excluded(self, masterlist_text):
        urls = [m.url for m in extract_urls(masterlist_text)]

        assert urls == [
            "https://www.nexusmods.com/skyrim/mods/19",
            "https://loot.github.io/docs",
        ]

    def test_any_scheme_is_extracted(self):
        text = "(ftp://files.example/a) <mailto://x>"

        assert [m.url for m in extract_urls(text)] == [
            "ftp://files.example/a",
            "mailto://x",
        ]

    def test_no_urls(self):
        assert list(extract_urls("nothing to see here")) == []


class TestProbe:
    @pytest.mark.asyncio
    async def test_ok(self):
        handler = routes({"https://a.example/": httpx.Response(200)})

        async with make_checker(handler) as checker:
            result = await checker.probe("https://a.example/")

        assert result.status == ProbeStatus.OK

    @pytest.mark.asyncio
    async def test_redirect_is_reported_not_followed(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(301, headers={"Location": "https://new.example"})

        async with make_checker(handler) as checker:
            result = await checker.probe("https://old.example/")

        assert result == ProbeResult.redirected("https://new.example", 301)
        assert result.describe() == "redirects to https://new.example"
        assert calls == ["https://old.example/"]

    @pytest.mark.asyncio
    async def test_unsupported_scheme_makes_no_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        async with make_checker(handler) as checker:
            result = await checker.probe("ftp://x")

        assert result.status == ProbeStatus.FAILED
        assert result.detail == "unsupported scheme"
        assert calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [204, 404, 405, 500])
    async def test_non_200_statuses_fail(self, status_code):
        handler = routes({"https://a.example/": httpx.Response(status_code)})

        async with make_checker(handler) as checker:
            result = await checker.probe("https://a.example/")

        assert result.status == ProbeStatus.FAILED
        assert result.detail == f"HTTP {status_code}"
        assert result.status_code == status_code

    @pytest.mark.asyncio
    async def test_transport_timeout(self):
        request = httpx.Request("HEAD", "https://slow.example/")
        handler = routes(
            {"https://slow.example/": httpx.ReadTimeout("slow", request=request)}
        )

        async with make_checker(handler) as checker:
            result = await checker.probe("https://slow.example/")

        assert result == ProbeResult.failed("timeout")

    @pytest.mark.asyncio
    async def test_probe_is_bounded_by_timeout(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        async with make_checker(handler, timeout=0.05) as checker:
            result = await checker.probe("https://hangs.example/")

        assert result.detail == "timeout"

    @pytest.mark.asyncio
    async def test_unreachable_host(self):
        request = httpx.Request("HEAD", "https://gone.example/")
        handler = routes(
            {
                "https://gone.example/": httpx.ConnectError(
                    "[Errno -2] Name or service not known", request=request
                )
            }
        )

        async with make_checker(handler) as checker:
            result = await checker.probe("https://gone.example/")

        assert result.status == ProbeStatus.FAILED
        assert "Cannot resolve host" in result.detail

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            LinkChecker(max_concurrency=0)


class TestCheckAll:
    @pytest.mark.asyncio
    async def test_unreachable_url_does_not_hide_reachable_one(self):
        request = httpx.Request("HEAD", "http://down.example/")
        handler = routes(
            {
                "https://up.example/": httpx.Response(200),
                "http://down.example/": httpx.ConnectError(
                    "[Errno 111] Connection refused", request=request
                ),
            }
        )
        text = "first http://down.example/ then https://up.example/"

        async with make_checker(handler) as checker:
            results = await checker.check_all(text)

        assert [r.url for r in results] == [
            "http://down.example/",
            "https://up.example/",
        ]
        assert results[0].result.status == ProbeStatus.FAILED
        assert results[1].result.status == ProbeStatus.OK

    @pytest.mark.asyncio
    async def test_results_are_ordered_by_position(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            # earlier URLs answer later
            await asyncio.sleep(0.05 if "first" in str(request.url) else 0)
            return httpx.Response(200)

        text = "https://first.example/ https://second.example/ ftp://third"

        async with make_checker(handler) as checker:
            results = await checker.check_all(text)

        assert [r.url for r in results] == [
            "https://first.example/",
            "https://second.example/",
            "ftp://third",
        ]
        assert [r.position for r in results] == sorted(r.position for r in results)
        assert results[2].result.detail == "unsupported scheme"

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        state = {"active": 0, "peak": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return httpx.Response(200)

        text = " ".join(f"https://host{i}.example/" for i in range(12))

        async with make_checker(handler, max_concurrency=3) as checker:
            results = await checker.check_all(text)

        assert len(results) == 12
        assert all(r.result.status == ProbeStatus.OK for r in results)
        assert 1 <= state["peak"] <= 3

    @pytest.mark.asyncio
    async def test_concurrent_batches_share_the_bound(self):
        state = {"active": 0, "peak": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return httpx.Response(200)

        first = " ".join(f"https://first{i}.example/" for i in range(8))
        second = " ".join(f"https://second{i}.example/" for i in range(8))

        async with make_checker(handler, max_concurrency=3) as checker:
            results = await asyncio.gather(
                checker.check_all(first), checker.check_all(second)
            )
            assert checker.semaphore is checker.semaphore

        assert [len(r) for r in results] == [8, 8]
        assert all(
            entry.result.status == ProbeStatus.OK for batch in results for entry in batch
        )
        assert 1 <= state["peak"] <= 3

    @pytest.mark.asyncio
    async def test_unexpected_probe_error_becomes_failed_entry(self, monkeypatch):
        handler = routes({})

        async with make_checker(handler) as checker:

            async def broken_probe(url):
                raise RuntimeError("boom")

            monkeypatch.setattr(checker, "probe", broken_probe)
            results = await checker.check_all("https://a.example/")

        assert results[0].result.detail == "unexpected error: boom"

    @pytest.mark.asyncio
    async def test_text_without_urls(self):
        async with make_checker(routes({})) as checker:
            assert await checker.check_all("no links") == []
