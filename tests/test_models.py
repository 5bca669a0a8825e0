import pytest
from pydantic import ValidationError

from conftest import video_payload
from tvcatalog.errors import ParseError
from tvcatalog.models import (
    EpisodesResponse,
    ListingEnvelope,
    ManifestResolution,
    ServiceCatalog,
    Video,
    VideoType,
)


def test_video_parses_camel_case_payload_and_round_trips_aliases():
    video = Video.model_validate(video_payload("42", videoType="episode"))

    assert video.video_type is VideoType.EPISODE
    assert video.video_uri.endswith("sn%3D42")
    assert not video.is_standalone
    payload = video.to_payload()
    assert payload["videoUri"] == video.video_uri
    assert payload["videoType"] == "EPISODE"
    assert "video_uri" not in payload


def test_video_normalises_nulls_and_numbers():
    video = Video.model_validate(
        video_payload(
            "7",
            videoType="MOVIE",
            seriesUri=None,
            episodeNumber=3,
            description=None,
        )
    )

    assert video.series_uri == ""
    assert video.episode_number == "3"
    assert video.description == ""
    assert video.is_standalone


def test_episode_without_series_is_rejected():
    with pytest.raises(ValidationError, match="seriesUri"):
        Video.model_validate(video_payload("1", seriesUri=" "))


def test_degraded_copy_only_changes_name():
    video = Video.model_validate(video_payload("1"))

    degraded = video.degraded(" (episodes unavailable)")

    assert degraded.name == "Video 1 (episodes unavailable)"
    assert degraded.model_copy(update={"name": video.name}) == video


def test_service_catalog_parses_services_in_order():
    catalog = ServiceCatalog.from_payload(
        {
            "updated": 1714521600,
            "services": [
                {"site": "gamer", "listUri": "http://b/gamer/list", "m3u8Entry": "/m3u8"},
                {"site": "anime1", "listUri": "http://b/anime1/list"},
            ],
        }
    )

    assert catalog.updated == "1714521600"
    assert [service.label for service in catalog.services] == ["GAMER", "ANIME1"]
    assert catalog.services[0].m3u8_entry == "/m3u8"
    assert catalog.services[1].episodes_entry is None


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"services": [{"site": "gamer"}]},
        {"services": [{"site": " ", "listUri": "http://b/x"}]},
        {
            "services": [
                {"site": "gamer", "listUri": "http://b/1"},
                {"site": "gamer", "listUri": "http://b/2"},
            ]
        },
    ],
)
def test_invalid_catalog_payloads_raise_parse_error(payload):
    with pytest.raises(ParseError):
        ServiceCatalog.from_payload(payload)


def test_listing_skips_malformed_entries():
    videos = ListingEnvelope.parse_videos(
        {
            "content": [
                video_payload("ok"),
                {"id": "missing-fields"},
                "not an object",
                video_payload("also-ok"),
            ]
        },
        source="gamer",
    )

    assert [video.id for video in videos] == ["ok", "also-ok"]


def test_listing_requires_object_with_content_list():
    with pytest.raises(ParseError):
        ListingEnvelope.parse_videos(["no", "envelope"], source="gamer")
    with pytest.raises(ParseError):
        ListingEnvelope.parse_videos({"content": "nope"}, source="gamer")
    assert ListingEnvelope.parse_videos({}, source="gamer") == ()


def test_episodes_response_tolerates_null_list():
    response = EpisodesResponse.model_validate({"success": True, "episodes": None})

    assert response.episodes == []


def test_manifest_resolution_accepts_either_url_key_and_blanks():
    modern = ManifestResolution.model_validate(
        {"success": True, "manifestUrl": "https://x/i.m3u8", "referer": ""}
    )
    legacy = ManifestResolution.model_validate({"success": True, "m3u8Url": "https://x/i.m3u8"})

    assert modern.manifest_url == legacy.manifest_url == "https://x/i.m3u8"
    assert modern.referer is None
    assert ManifestResolution.model_validate({}).success is False


def test_numeric_scalars_are_read_as_strings():
    videos = ListingEnvelope.parse_videos(
        {"content": [video_payload("x", id=42, name=2024, uri=7, episodeNumber=3)]},
        source="gamer",
    )

    assert len(videos) == 1
    assert videos[0].id == "42"
    assert videos[0].name == "2024"
    assert videos[0].uri == "7"
    assert videos[0].episode_number == "3"


def test_episode_titles_may_be_numbers():
    response = EpisodesResponse.model_validate(
        {"episodes": [{"title": 1, "originalUrl": "https://x/1", "videoUri": "https://x/1.mp4"}]}
    )

    assert response.episodes[0].title == "1"
