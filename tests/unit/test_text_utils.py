"""
Tests de utilidades de texto y de detección de videos.
"""
from datetime import datetime, timedelta, timezone

import pytest

from portfolio_sync.shared.utils.datetime_utils import isoformat_z
from portfolio_sync.shared.utils.text_utils import (
    calculate_reading_time,
    collapse_whitespace,
    make_unique_slug,
    normalize_project_type,
    normalize_title,
    parse_credits_text,
    parse_external_links,
    slugify,
    split_comma_list,
)
from portfolio_sync.shared.utils.video_utils import get_video_id, video_thumbnail_url


class TestSlugs:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Night Swim 2023", "night-swim-2023"),
            ("Café  Olé!", "cafe-ole"),
            ("--Already--slugged--", "already-slugged"),
            ("", "untitled"),
            ("¡¿?!", "untitled"),
        ],
    )
    def test_slugify(self, value, expected) -> None:
        assert slugify(value) == expected

    def test_unique_slug_uses_record_id_then_counter(self) -> None:
        used = set()
        assert make_unique_slug("Same", used, "recAAA111") == "same"
        assert make_unique_slug("Same", used, "recAAA111") == "same-recaaa"
        assert make_unique_slug("Same", used, "recAAA111") == "same-2"
        assert used == {"same", "same-recaaa", "same-2"}

    def test_slug_is_truncated(self) -> None:
        assert len(make_unique_slug("x" * 200, set())) == 80


class TestNormalization:
    def test_title_case(self) -> None:
        assert normalize_title("night_swim  -  FINAL") == "Night Swim Final"
        assert normalize_title(None) == "Untitled"

    def test_project_type_buckets(self) -> None:
        assert normalize_project_type("Short Film") == "Narrative"
        assert normalize_project_type("TVC") == "Commercial"
        assert normalize_project_type("Music Promo") == "Music Video"
        assert normalize_project_type("Mini Documentary") == "Documentary"
        assert normalize_project_type("Other") == "Uncategorized"

    def test_credits(self) -> None:
        assert parse_credits_text("Director: Jane Doe, DOP: Sam | Gaffer") == [
            {"role": "Director", "name": "Jane Doe"},
            {"role": "DOP", "name": "Sam"},
            {"role": "Credit", "name": "Gaffer"},
        ]
        assert parse_credits_text("") == []

    def test_reading_time(self) -> None:
        assert calculate_reading_time(None) == "1 min read"
        assert calculate_reading_time("<p>" + "word " * 500 + "</p>") == "3 min read"

    def test_comma_list_and_whitespace(self) -> None:
        assert split_comma_list("Director, Colourist ,") == ["Director", "Colourist"]
        assert split_comma_list(["A", " "]) == ["A"]
        assert split_comma_list(None) == []
        assert collapse_whitespace(" a \n\n b ") == "a b"
        assert collapse_whitespace("abcdef", max_length=4) == "abc…"


class TestExternalLinks:
    def test_videos_are_split_from_links(self) -> None:
        links, videos = parse_external_links(
            "https://www.imdb.com/title/tt1, https://youtu.be/dQw4w9WgXcQ\nhttps://vimeo.com/123456 | not a link"
        )

        assert links == [{"label": "IMDb", "url": "https://www.imdb.com/title/tt1"}]
        assert videos == ["https://youtu.be/dQw4w9WgXcQ", "https://vimeo.com/123456"]

    def test_unknown_host_label(self) -> None:
        links, _ = parse_external_links("https://festival.org/entry")
        assert links[0]["label"] == "Festival"


class TestVideos:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", ("youtube", "dQw4w9WgXcQ", None)),
            ("https://vimeo.com/76979871/abc123", ("vimeo", "76979871", "abc123")),
            ("https://player.vimeo.com/video/76979871?h=ff00", ("vimeo", "76979871", "ff00")),
            ("https://example.com/video", (None, None, None)),
            (None, (None, None, None)),
        ],
    )
    def test_get_video_id(self, url, expected) -> None:
        assert get_video_id(url) == expected

    def test_thumbnails(self) -> None:
        assert video_thumbnail_url("https://youtu.be/dQw4w9WgXcQ") == "https://img.youtube.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"
        assert video_thumbnail_url("https://x.test, https://vimeo.com/42") == "https://vumbnail.com/42.jpg"
        assert video_thumbnail_url("") == ""


class TestDatetimeUtils:
    def test_isoformat_z_uses_milliseconds(self) -> None:
        moment = datetime(2025, 1, 10, 9, 30, 0, 123456, tzinfo=timezone.utc)
        assert isoformat_z(moment) == "2025-01-10T09:30:00.123Z"

    def test_naive_datetime_is_treated_as_utc(self) -> None:
        assert isoformat_z(datetime(2025, 1, 10, 9, 30)) == "2025-01-10T09:30:00.000Z"
        shifted = datetime(2025, 1, 10, 11, 30, tzinfo=timezone(timedelta(hours=2)))
        assert isoformat_z(shifted) == "2025-01-10T09:30:00.000Z"
