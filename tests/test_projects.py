from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from fakes import FakeDiscord, FakeFetcher, listing_page, project_page, snowflake
from parse.models import Channel, Message, Project
from sync.projects import (
    build_chat_projects,
    build_website_projects,
    check_current_projects,
    fetch_chat_project_links,
    fetch_website_project_links,
    format_project_list,
    is_stale,
    reconcile_projects,
)
from utils.errors import ChannelNotFoundError, HTTPStatusError

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)
SITE = "https://site.example"


def _p(pid: str, deadline: datetime, urls: list[str] | None = None, channel: Channel | None = None) -> Project:
    return Project(id=pid, name=pid.title(), deadline=deadline, channel=channel, urls=list(urls or []))


def _guild() -> FakeDiscord:
    created = datetime(2024, 2, 1, tzinfo=UTC)
    channels = [
        Channel(id="1", name="current-projects"),
        Channel(id="10", name="spring-song"),
        Channel(id="11", name="winter-song"),
    ]
    messages = [
        Message(id=snowflake(created, 1), content="Spring Song\nDeadline: April 20th\n<#10>"),
        Message(id=snowflake(created, 2), content="Winter Song\nDeadline: March 1st\n<#11>"),
        Message(id=snowflake(created, 3), content="Chamber Piece\nDeadline: -- \n"),
        Message(id=snowflake(created, 4), content="Broken\nDeadline: Sometime\n<#10>"),
        Message(id=snowflake(created, 5), content="Untracked\nDeadline: May 2\n<#404>"),
    ]
    return FakeDiscord(channels=channels, messages={"1": messages})


# -------------------- collection builders --------------------


def test_build_chat_projects_drops_skips_and_sorts_by_deadline():
    errors = []
    projects = build_chat_projects(_guild(), "guild", on_error=errors.append)
    assert [p.id for p in projects] == ["winter-song", "spring-song"]
    assert projects[0].deadline == datetime(2024, 3, 1, tzinfo=UTC)
    assert len(errors) == 1
    assert errors[0].name == "Broken"


def test_build_chat_projects_ignores_plain_text_messages():
    client = _guild()
    created = datetime(2024, 2, 1, tzinfo=UTC)
    client.messages["1"].append(
        Message(id=snowflake(created, 6), content="Welcome! One message per project below.")
    )
    errors = []
    projects = build_chat_projects(client, "guild", on_error=errors.append)
    assert [p.id for p in projects] == ["winter-song", "spring-song"]
    assert [e.name for e in errors] == ["Broken"]


def test_build_chat_projects_requires_projects_channel():
    client = FakeDiscord(channels=[Channel(id="2", name="general")])
    with pytest.raises(LookupError):
        build_chat_projects(client, "guild")
    with pytest.raises(ChannelNotFoundError, match="current-projects"):
        build_chat_projects(client, "guild")


def test_build_website_projects_resolves_year_a_month_back():
    fetcher = FakeFetcher(
        {
            SITE: listing_page(
                ("/projects/new-year", "Due Jan. 5 - New Year"),
                ("/projects/holiday", "Due December 20 - Holiday"),
                ("/projects/", "All projects"),
                ("/about", "Due Jan. 9 - Not A Project"),
            )
        }
    )
    projects = build_website_projects(fetcher, SITE, now=datetime(2024, 1, 15, tzinfo=UTC))
    assert [(p.id, p.deadline) for p in projects] == [
        ("holiday", datetime(2023, 12, 20, tzinfo=UTC)),
        ("new-year", datetime(2024, 1, 5, tzinfo=UTC)),
    ]
    assert projects[1].name == "New Year"


def test_build_website_projects_propagates_transport_errors():
    with pytest.raises(HTTPStatusError) as exc:
        build_website_projects(FakeFetcher(), SITE, now=NOW)
    assert exc.value.status_code == 404
    assert exc.value.url == SITE


def test_fetch_chat_project_links_reads_pins_sorted():
    chan = Channel(id="10", name="spring-song")
    client = FakeDiscord(pins={"10": [Message(id="5", content="Parts: https://b.example/x. Click https://a.example/y")]})
    p = _p("spring-song", NOW, channel=chan)
    fetch_chat_project_links(client, p)
    assert p.urls == ["https://a.example/y", "https://b.example/x"]

    orphan = _p("orphan", NOW)
    fetch_chat_project_links(client, orphan)
    assert orphan.urls == []


# -------------------- reconciler --------------------


def test_reconcile_empty_when_everything_matches():
    d = NOW + timedelta(days=10)
    assert reconcile_projects([_p("a", d)], [_p("a", d)], now=NOW) == ""


def test_reconcile_reports_wrong_deadline():
    report = reconcile_projects(
        [_p("a", datetime(2024, 4, 1, tzinfo=UTC))],
        [_p("a", datetime(2024, 4, 2, tzinfo=UTC))],
        now=NOW,
    )
    assert report == "- a: wrong deadline (website: 2024-04-02, #current-projects: 2024-04-01)\n"


def test_is_stale_two_day_boundary():
    assert not is_stale(NOW - timedelta(days=1), NOW)
    assert not is_stale(NOW - timedelta(days=2), NOW)
    assert is_stale(NOW - timedelta(days=2, seconds=1), NOW)


def test_reconcile_flags_passed_deadline_for_listed_project():
    fresh = NOW - timedelta(days=1)
    stale = NOW - timedelta(days=2, seconds=1)
    assert reconcile_projects([_p("a", fresh)], [_p("a", fresh)], now=NOW) == ""
    assert reconcile_projects([_p("a", stale)], [_p("a", stale)], now=NOW) == (
        f"- a: deadline {stale:%Y-%m-%d} has passed\n"
    )


def test_reconcile_website_only_project():
    fresh = _p("fresh", NOW + timedelta(days=5))
    stale = _p("stale", NOW - timedelta(days=3))
    report = reconcile_projects([], [fresh, stale], now=NOW)
    assert report.splitlines() == [
        "- fresh: on website but not in #current-projects",
        f"- stale: deadline {stale.deadline:%Y-%m-%d} has passed",
    ]


def test_reconcile_chat_only_project_ignored_once_stale():
    report = reconcile_projects(
        [_p("new", NOW + timedelta(days=5)), _p("done", NOW - timedelta(days=3))],
        [],
        now=NOW,
    )
    assert report == "- new: missing on website\n"


def test_reconcile_url_containment():
    d = NOW + timedelta(days=5)
    website = _p(
        "a",
        d,
        urls=[
            "https://drive.example/parts",
            "https://discord.gg/secret",
            "https://forms.example/signup",
        ],
    )
    chat = _p("a", d, urls=["https://zzz.example", "https://drive.example/parts"])
    report = reconcile_projects([chat], [website], now=NOW)
    assert report == "- a: URL does not appear in channel pins https://forms.example/signup\n"


def test_reconcile_fetches_chat_links_only_when_website_has_links():
    d = NOW + timedelta(days=5)
    fetched = []

    def fetch(p):
        fetched.append(p.id)
        p.urls.append("https://x.example")

    report = reconcile_projects(
        [_p("a", d), _p("b", d)],
        [_p("a", d), _p("b", d, urls=["https://x.example"])],
        now=NOW,
        fetch_links=fetch,
    )
    assert report == ""
    assert fetched == ["b"]


def test_reconcile_is_idempotent_and_ordered_by_id():
    d = NOW + timedelta(days=5)
    primary = [_p("zeta", d), _p("alpha", d + timedelta(days=1)), _p("mid", d)]
    reference = [_p("mid", d, urls=["https://m.example"]), _p("beta", d), _p("alpha", d)]
    first = reconcile_projects(primary, reference, now=NOW)
    second = reconcile_projects(primary, reference, now=NOW)
    assert first == second
    assert [line.split(":")[0] for line in first.splitlines()] == ["- alpha", "- beta", "- mid", "- zeta"]


def test_reconcile_custom_grace_and_channel_name():
    d = NOW - timedelta(days=3)
    report = reconcile_projects(
        [_p("a", d)], [_p("b", NOW + timedelta(days=1))],
        now=NOW, grace=timedelta(days=5), channel_name="projects",
    )
    assert report.splitlines() == [
        "- b: on website but not in #projects",
        "- a: missing on website",
    ]


# -------------------- end to end --------------------


def test_check_current_projects_end_to_end():
    client = _guild()
    client.pins = {"10": [Message(id="7", content="Score: https://drive.example/spring")]}
    fetcher = FakeFetcher(
        {
            SITE: listing_page(
                ("/projects/spring-song", "Due Apr. 20 - Spring Song"),
                ("/projects/summer-song", "Due June 30 - Summer Song"),
            ),
            f"{SITE}/projects/spring-song": project_page(
                "https://www.google.com/url?q=https://drive.example/spring&sa=D",
                "https://drive.example/missing",
            ),
            f"{SITE}/projects/summer-song": project_page(),
        }
    )
    errors = []
    report = check_current_projects(
        client, fetcher, guild_id="g", website_url=SITE, on_parse_error=errors.append, now=NOW
    )
    assert report.splitlines() == [
        "- spring-song: URL does not appear in channel pins https://drive.example/missing",
        "- summer-song: on website but not in #current-projects",
    ]
    # winter-song passed its deadline more than two days ago and is not reported.
    assert client.pin_calls == ["10"]
    assert len(errors) == 1


def test_format_project_list():
    projects = [_p("a", datetime(2024, 4, 1, tzinfo=UTC)), _p("b", datetime(2024, 5, 2, tzinfo=UTC))]
    assert format_project_list(projects) == "- a due 2024-04-01\n- b due 2024-05-02\n"


def test_missing_url_lines_follow_sorted_url_order():
    fetcher = FakeFetcher({f"{SITE}/projects/a": project_page("https://z.example", "https://b.example")})
    website = [_p("a", NOW + timedelta(days=5))]
    fetch_website_project_links(fetcher, website, SITE)
    assert website[0].urls == ["https://b.example", "https://z.example"]

    report = reconcile_projects([_p("a", NOW + timedelta(days=5))], website, now=NOW)
    assert report.splitlines() == [
        "- a: URL does not appear in channel pins https://b.example",
        "- a: URL does not appear in channel pins https://z.example",
    ]
