"""External feeds: LeetCode daily challenge and upcoming contests.

All requests go through a synchronous ``httpx.Client``. Callers (and
tests) may pass their own client, e.g. one built on ``httpx.MockTransport``.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import structlog

from practice.utils.dates import parse_iso, to_iso, utc_now

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

LEETCODE_GRAPHQL_URL = "https://leetcode.com/graphql"
CODEFORCES_CONTESTS_URL = "https://codeforces.com/api/contest.list"
ATCODER_CONTESTS_URL = "https://kenkoooo.com/atcoder/resources/contests.json"
CODECHEF_CONTESTS_URL = "https://www.codechef.com/api/list/contests/all"

REQUEST_TIMEOUT = 30.0
MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0
BACKOFF_MAX_SECONDS = 5.0
MAX_CONTESTS_PER_SOURCE = 20

DAILY_CHALLENGE_QUERY = """
query questionOfToday {
  activeDailyCodingChallengeQuestion {
    date
    link
    question {
      acRate
      difficulty
      frontendQuestionId
      paidOnly
      title
      titleSlug
      topicTags { name slug }
    }
  }
}
"""

LEETCODE_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/plain, */*",
    "Referer": "https://leetcode.com/",
    "Origin": "https://leetcode.com",
    "User-Agent": "Mozilla/5.0 (compatible; practice-tracker)",
}


class ExternalServiceError(Exception):
    """An external service failed or answered with unexpected data."""

    pass


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class DailyChallenge:
    date: str
    title: str
    title_slug: str
    difficulty: str
    url: str
    question_id: str = ""
    ac_rate: float | None = None
    paid_only: bool = False
    topics: list[str] = field(default_factory=list)
    fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UpcomingContest:
    id: str
    name: str
    platform: str
    start_time: str
    duration: int
    url: str
    status: str = "scheduled"
    type: str = "contest"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def fallback_daily_challenge(now: datetime | None = None) -> DailyChallenge:
    """Two Sum, dated today."""
    today = (now or utc_now()).date().isoformat()
    return DailyChallenge(
        date=today,
        title="Two Sum (Fallback Problem)",
        title_slug="two-sum",
        difficulty="Easy",
        url="https://leetcode.com/problems/two-sum/",
        question_id="1",
        ac_rate=54.5,
        topics=["Array", "Hash Table"],
        fallback=True,
    )


# =============================================================================
# HTTP HELPERS
# =============================================================================


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after a failed attempt (1-based)."""
    return min(BACKOFF_BASE_SECONDS * 2 ** (attempt - 1), BACKOFF_MAX_SECONDS)


def _is_retryable(status_code: int) -> bool:
    return not (400 <= status_code < 500) or status_code == 429


def post_with_retry(
    client: httpx.Client,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str] | None = None,
    max_attempts: int = MAX_ATTEMPTS,
    sleep: Callable[[float], None] = time.sleep,
) -> httpx.Response:
    """POST with exponential backoff.

    Client errors other than 429 are not retried.

    Raises:
        ExternalServiceError: When every attempt failed
    """
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            response = client.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning("external_request_error", url=url, attempt=attempt, error=str(e))
            last_error = e
        else:
            if response.is_success:
                return response
            logger.warning(
                "external_request_failed",
                url=url,
                attempt=attempt,
                status=response.status_code,
                body=response.text[:200],
            )
            last_error = ExternalServiceError(f"{url} responded with status {response.status_code}")
            if not _is_retryable(response.status_code):
                break

        if attempt < max_attempts:
            sleep(backoff_delay(attempt))

    raise ExternalServiceError(f"All attempts to reach {url} failed: {last_error}")


def _get_json(client: httpx.Client, url: str) -> Any:
    response = client.get(url, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return response.json()


def _expect_shape(payload: Any, expected: type, source: str) -> Any:
    """Raise ExternalServiceError unless the decoded JSON has the expected type."""
    if not isinstance(payload, expected):
        raise ExternalServiceError(
            f"Unexpected {source} response: {type(payload).__name__}"
        )
    return payload


# =============================================================================
# DAILY CHALLENGE
# =============================================================================


def parse_daily_challenge(payload: dict[str, Any]) -> DailyChallenge:
    """Extract the daily challenge from a GraphQL answer.

    Raises:
        ExternalServiceError: If the answer has no daily challenge
    """
    data = _expect_shape(payload, dict, "LeetCode").get("data") or {}
    active = _expect_shape(data, dict, "LeetCode").get("activeDailyCodingChallengeQuestion")
    if not isinstance(active, dict) or not isinstance(active.get("question"), dict):
        raise ExternalServiceError("No daily problem in LeetCode response")

    question = active["question"]
    link = active.get("link") or f"/problems/{question['titleSlug']}/"
    return DailyChallenge(
        date=active.get("date", ""),
        title=question["title"],
        title_slug=question["titleSlug"],
        difficulty=question.get("difficulty", ""),
        url=f"https://leetcode.com{link}",
        question_id=str(question.get("frontendQuestionId", "")),
        ac_rate=question.get("acRate"),
        paid_only=bool(question.get("paidOnly", False)),
        topics=[tag["name"] for tag in question.get("topicTags") or []],
    )


def fetch_daily_challenge(
    client: httpx.Client | None = None,
    sleep: Callable[[float], None] = time.sleep,
    now: datetime | None = None,
) -> DailyChallenge:
    """Today's LeetCode problem, or the Two Sum fallback if LeetCode fails."""
    owns_client = client is None
    client = client or httpx.Client()
    try:
        response = post_with_retry(
            client,
            LEETCODE_GRAPHQL_URL,
            {"query": DAILY_CHALLENGE_QUERY},
            headers=LEETCODE_HEADERS,
            sleep=sleep,
        )
        challenge = parse_daily_challenge(response.json())
    except (ExternalServiceError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("daily_challenge_fallback", error=str(e))
        return fallback_daily_challenge(now)
    finally:
        if owns_client:
            client.close()

    logger.info("daily_challenge_fetched", title=challenge.title)
    return challenge


# =============================================================================
# CONTESTS
# =============================================================================


def _epoch_to_iso(seconds: float) -> str:
    return to_iso(datetime.fromtimestamp(seconds, tz=timezone.utc))


def parse_codeforces_contests(payload: dict[str, Any]) -> list[UpcomingContest]:
    _expect_shape(payload, dict, "Codeforces")
    if payload.get("status") != "OK":
        raise ExternalServiceError(f"Codeforces API error: {payload.get('comment')}")
    return [
        UpcomingContest(
            id=str(contest["id"]),
            name=contest["name"],
            platform="codeforces",
            start_time=_epoch_to_iso(contest["startTimeSeconds"]),
            duration=int(contest["durationSeconds"]) // 60,
            url=f"https://codeforces.com/contest/{contest['id']}",
            type=str(contest.get("type", "contest")).lower(),
        )
        for contest in payload.get("result", [])
        if contest.get("phase") == "BEFORE"
    ]


def parse_atcoder_contests(
    payload: list[dict[str, Any]], now: datetime | None = None
) -> list[UpcomingContest]:
    _expect_shape(payload, list, "AtCoder")
    now_seconds = (now or utc_now()).timestamp()
    upcoming = [c for c in payload if c.get("start_epoch_second", 0) > now_seconds]
    return [
        UpcomingContest(
            id=contest["id"],
            name=contest["title"],
            platform="atcoder",
            start_time=_epoch_to_iso(contest["start_epoch_second"]),
            duration=int(contest["duration_second"]) // 60,
            url=f"https://atcoder.jp/contests/{contest['id']}",
            type="unrated" if contest.get("rate_change") == "-" else "rated",
        )
        for contest in upcoming[:MAX_CONTESTS_PER_SOURCE]
    ]


def parse_codechef_contests(payload: dict[str, Any]) -> list[UpcomingContest]:
    _expect_shape(payload, dict, "CodeChef")
    contests = []
    for contest in payload.get("future_contests") or []:
        start = parse_iso(contest["contest_start_date_iso"])
        end = parse_iso(contest["contest_end_date_iso"])
        contests.append(
            UpcomingContest(
                id=contest["contest_code"],
                name=contest["contest_name"],
                platform="codechef",
                start_time=to_iso(start),
                duration=int((end - start).total_seconds() / 60 + 0.5),
                url=f"https://www.codechef.com/{contest['contest_code']}",
            )
        )
    return contests[:MAX_CONTESTS_PER_SOURCE]


def fetch_upcoming_contests(
    client: httpx.Client | None = None, now: datetime | None = None
) -> list[UpcomingContest]:
    """Upcoming contests from all sources, soonest first.

    A failing source contributes nothing.
    """
    owns_client = client is None
    client = client or httpx.Client()
    sources: list[tuple[str, str, Callable[[Any], list[UpcomingContest]]]] = [
        ("codeforces", CODEFORCES_CONTESTS_URL, parse_codeforces_contests),
        ("atcoder", ATCODER_CONTESTS_URL, lambda data: parse_atcoder_contests(data, now)),
        ("codechef", CODECHEF_CONTESTS_URL, parse_codechef_contests),
    ]

    contests: list[UpcomingContest] = []
    try:
        for name, url, parse in sources:
            try:
                found = parse(_get_json(client, url))
            except (
                httpx.HTTPError,
                ExternalServiceError,
                ValueError,
                KeyError,
                TypeError,
                AttributeError,
            ) as e:
                logger.warning("contest_source_failed", source=name, error=str(e))
                continue
            logger.debug("contest_source_fetched", source=name, count=len(found))
            contests.extend(found)
    finally:
        if owns_client:
            client.close()

    contests.sort(key=lambda c: c.start_time)
    return contests
