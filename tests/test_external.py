"""Tests for the external feeds (httpx.MockTransport, no network)."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from practice.services.external import (
    ATCODER_CONTESTS_URL,
    CODECHEF_CONTESTS_URL,
    CODEFORCES_CONTESTS_URL,
    LEETCODE_GRAPHQL_URL,
    ExternalServiceError,
    backoff_delay,
    fetch_daily_challenge,
    fetch_upcoming_contests,
    parse_atcoder_contests,
    parse_codechef_contests,
    parse_codeforces_contests,
    post_with_retry,
)

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)
NOW_TS = int(NOW.timestamp())

DAILY_PAYLOAD = {
    "data": {
        "activeDailyCodingChallengeQuestion": {
            "date": "2024-03-01",
            "link": "/problems/merge-intervals/",
            "question": {
                "acRate": 46.2,
                "difficulty": "Medium",
                "frontendQuestionId": "56",
                "paidOnly": False,
                "title": "Merge Intervals",
                "titleSlug": "merge-intervals",
                "topicTags": [{"name": "Array", "slug": "array"}, {"name": "Sorting", "slug": "sorting"}],
            },
        }
    }
}

CODEFORCES_PAYLOAD = {
    "status": "OK",
    "result": [
        {"id": 1950, "name": "Round 937", "type": "CF", "phase": "BEFORE",
         "durationSeconds": 7200, "startTimeSeconds": NOW_TS + 7200},
        {"id": 1949, "name": "Old Round", "type": "CF", "phase": "FINISHED",
         "durationSeconds": 7200, "startTimeSeconds": NOW_TS - 86400},
    ],
}

ATCODER_PAYLOAD = [
    {"id": "abc345", "title": "AtCoder Beginner Contest 345",
     "start_epoch_second": NOW_TS + 3600, "duration_second": 6000, "rate_change": " ~ 1999"},
    {"id": "abc100", "title": "Past", "start_epoch_second": NOW_TS - 3600,
     "duration_second": 6000, "rate_change": "-"},
]

CODECHEF_PAYLOAD = {
    "future_contests": [
        {"contest_code": "START125", "contest_name": "Starters 125",
         "contest_start_date_iso": "2024-03-02T14:30:00+00:00",
         "contest_end_date_iso": "2024-03-02T16:30:00+00:00"},
    ]
}


def no_sleep(seconds):
    pass


def make_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestBackoff:
    """Tests for retry delays."""

    def test_exponential_capped(self):
        assert [backoff_delay(a) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


class TestPostWithRetry:
    """Tests for post_with_retry."""

    def test_retries_server_errors(self):
        """5xx answers are retried until success."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        delays = []
        response = post_with_retry(make_client(handler), "https://x.test", {}, sleep=delays.append)

        assert response.json() == {"ok": True}
        assert len(calls) == 3
        assert delays == [1.0, 2.0]

    def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403)

        with pytest.raises(ExternalServiceError, match="403"):
            post_with_retry(make_client(handler), "https://x.test", {}, sleep=no_sleep)
        assert len(calls) == 1

    def test_rate_limit_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        with pytest.raises(ExternalServiceError):
            post_with_retry(make_client(handler), "https://x.test", {}, sleep=no_sleep)
        assert len(calls) == 3

    def test_transport_errors_retried(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalServiceError, match="All attempts"):
            post_with_retry(make_client(handler), "https://x.test", {}, sleep=no_sleep)


class TestDailyChallenge:
    """Tests for fetch_daily_challenge."""

    def test_fetch(self):
        def handler(request):
            assert str(request.url) == LEETCODE_GRAPHQL_URL
            assert "activeDailyCodingChallengeQuestion" in json.loads(request.content)["query"]
            return httpx.Response(200, json=DAILY_PAYLOAD)

        challenge = fetch_daily_challenge(make_client(handler), sleep=no_sleep)

        assert challenge.title == "Merge Intervals"
        assert challenge.url == "https://leetcode.com/problems/merge-intervals/"
        assert challenge.question_id == "56"
        assert challenge.topics == ["Array", "Sorting"]
        assert not challenge.fallback

    def test_fallback_on_failure(self):
        def handler(request):
            return httpx.Response(500)

        challenge = fetch_daily_challenge(make_client(handler), sleep=no_sleep, now=NOW)

        assert challenge.fallback
        assert challenge.title == "Two Sum (Fallback Problem)"
        assert challenge.date == "2024-03-01"

    def test_fallback_on_empty_answer(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"activeDailyCodingChallengeQuestion": None}})

        assert fetch_daily_challenge(make_client(handler), sleep=no_sleep).fallback

    def test_fallback_on_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>blocked</html>")

        assert fetch_daily_challenge(make_client(handler), sleep=no_sleep).fallback

    @pytest.mark.parametrize(
        "body",
        [
            [1, 2],
            {"data": ["moved"]},
            {"data": {"activeDailyCodingChallengeQuestion": "x"}},
        ],
    )
    def test_fallback_on_unexpected_shape(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        assert fetch_daily_challenge(make_client(handler), sleep=no_sleep).fallback


class TestContestParsers:
    """Tests for per-source parsers."""

    def test_codeforces(self):
        contests = parse_codeforces_contests(CODEFORCES_PAYLOAD)

        assert len(contests) == 1
        contest = contests[0]
        assert contest.id == "1950"
        assert contest.duration == 120
        assert contest.url == "https://codeforces.com/contest/1950"
        assert contest.start_time == "2024-03-01T02:00:00+00:00"
        assert contest.type == "cf"

    def test_codeforces_error_status(self):
        with pytest.raises(ExternalServiceError, match="Codeforces API error"):
            parse_codeforces_contests({"status": "FAILED", "comment": "limit"})

    def test_atcoder_future_only(self):
        contests = parse_atcoder_contests(ATCODER_PAYLOAD, now=NOW)

        assert [c.id for c in contests] == ["abc345"]
        assert contests[0].duration == 100
        assert contests[0].type == "rated"
        assert contests[0].url == "https://atcoder.jp/contests/abc345"

    def test_codechef(self):
        contests = parse_codechef_contests(CODECHEF_PAYLOAD)

        assert contests[0].platform == "codechef"
        assert contests[0].duration == 120
        assert contests[0].url == "https://www.codechef.com/START125"

    @pytest.mark.parametrize(
        "parse,payload",
        [
            (parse_codeforces_contests, ["not", "a", "dict"]),
            (parse_atcoder_contests, {"error": "moved"}),
            (parse_codechef_contests, "maintenance"),
        ],
    )
    def test_unexpected_shape(self, parse, payload):
        with pytest.raises(ExternalServiceError, match="Unexpected"):
            parse(payload)


class TestFetchUpcomingContests:
    """Tests for fetch_upcoming_contests."""

    def test_all_sources_sorted(self):
        payloads = {
            CODEFORCES_CONTESTS_URL: CODEFORCES_PAYLOAD,
            ATCODER_CONTESTS_URL: ATCODER_PAYLOAD,
            CODECHEF_CONTESTS_URL: CODECHEF_PAYLOAD,
        }

        def handler(request):
            return httpx.Response(200, json=payloads[str(request.url)])

        contests = fetch_upcoming_contests(make_client(handler), now=NOW)

        assert [c.platform for c in contests] == ["atcoder", "codeforces", "codechef"]

    def test_failing_source_skipped(self):
        def handler(request):
            if str(request.url) == CODEFORCES_CONTESTS_URL:
                return httpx.Response(502)
            if str(request.url) == ATCODER_CONTESTS_URL:
                return httpx.Response(200, text="not json")
            return httpx.Response(200, json=CODECHEF_PAYLOAD)

        contests = fetch_upcoming_contests(make_client(handler), now=NOW)

        assert [c.id for c in contests] == ["START125"]

    def test_unexpected_shapes_skipped(self):
        """A source answering with the wrong JSON shape contributes nothing."""

        def handler(request):
            if str(request.url) == CODEFORCES_CONTESTS_URL:
                return httpx.Response(200, json={"status": "OK", "result": ["1950"]})
            if str(request.url) == ATCODER_CONTESTS_URL:
                return httpx.Response(200, json={"error": "moved"})
            return httpx.Response(200, json=CODECHEF_PAYLOAD)

        contests = fetch_upcoming_contests(make_client(handler), now=NOW)

        assert [c.id for c in contests] == ["START125"]
