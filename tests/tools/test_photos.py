"""Tests for photo fetching and the Wikimedia fallback."""

from __future__ import annotations

import asyncio

import pytest

import config
from cache.keys import PhotoKey
from errors import InvalidPhotoReferenceError, MissingConfigError, NoWikimediaPhotosFoundError, PhotoError
from tools import photos
from tools.photos import PhotoData
from workflows.schemas import PlacePhoto


@pytest.fixture(autouse=True)
def _photo_env(monkeypatch):
    monkeypatch.setattr(photos, "GOOGLE_MAPS_API_KEY", "fake")
    monkeypatch.setattr(config, "APP_ENV", "production")
    photos.PHOTO_CALL_STATS.clear()


@pytest.fixture
def downloads(monkeypatch):
    calls = []

    async def _fake_download(url, params=None, default_type="image/jpeg"):
        calls.append({"url": url, "params": params, "default_type": default_type})
        return PhotoData(b"img", default_type)

    monkeypatch.setattr(photos, "_download", _fake_download)
    return calls


def test_new_style_reference_uses_media_endpoint(downloads):
    key = PhotoKey("places/abc/photos/xyz", 400)

    result = asyncio.run(photos.fetch_photo(key))

    assert result == PhotoData(b"img", "image/jpeg")
    assert downloads == [{
        "url": "https://places.googleapis.com/v1/places/abc/photos/xyz/media",
        "params": {"maxWidthPx": "400", "key": "fake"},
        "default_type": "image/jpeg",
    }]


def test_legacy_reference_uses_photo_endpoint(downloads):
    asyncio.run(photos.fetch_photo(PhotoKey("CmRaAAAA", 800)))

    assert downloads[0]["url"] == photos.LEGACY_PHOTO_URL
    assert downloads[0]["params"] == {"maxwidth": "800", "photo_reference": "CmRaAAAA", "key": "fake"}


def test_url_reference_is_downloaded_directly(downloads):
    asyncio.run(photos.fetch_photo(PhotoKey("https://upload.wikimedia.org/a.jpg", 800)))

    assert downloads[0]["url"] == "https://upload.wikimedia.org/a.jpg"
    assert downloads[0]["params"] is None


@pytest.mark.parametrize("reference", [
    "http://169.254.169.254/latest/meta-data/iam/security-credentials/",
    "http://upload.wikimedia.org/a.jpg",
    "https://localhost:8080/admin",
    "https://upload.wikimedia.org.evil.example/a.jpg",
    "https://upload.wikimedia.org@10.0.0.1/a.jpg",
    "https://upload.wikimedia.org:8443/a.jpg",
    "file:///etc/passwd",
    "//169.254.169.254/latest",
])
def test_urls_outside_the_allowlist_are_never_fetched(downloads, reference):
    with pytest.raises(InvalidPhotoReferenceError) as exc:
        asyncio.run(photos.fetch_photo(PhotoKey(reference, 800)))

    assert exc.value.status_code == 400
    assert downloads == []


def test_disallowed_url_is_rejected_in_dev_mode_too(downloads, monkeypatch):
    monkeypatch.setattr(config, "APP_ENV", "development")

    with pytest.raises(InvalidPhotoReferenceError):
        asyncio.run(photos.fetch_photo(PhotoKey("http://127.0.0.1:6379/", 400)))
    assert downloads == []


def test_wikimedia_result_outside_the_allowlist_is_not_downloaded(monkeypatch, downloads):
    monkeypatch.setattr(
        photos.wikimedia,
        "search_photos_by_location",
        lambda lat, lng, radius, place_name: [PlacePhoto(photo_reference="http://10.0.0.5/x.jpg")],
    )

    with pytest.raises(InvalidPhotoReferenceError):
        asyncio.run(photos._fetch_wikimedia_photo(1.0, 2.0, None))
    assert downloads == []


def test_dev_mode_serves_placeholder(downloads, monkeypatch):
    monkeypatch.setattr(config, "APP_ENV", "development")

    result = asyncio.run(photos.fetch_photo(PhotoKey("places/abc/photos/xyz", 600)))

    assert downloads[0]["url"] == photos.placeholder_url(600)
    assert "600x402" in downloads[0]["url"]
    assert result.content_type == "image/png"


def test_google_failure_falls_back_to_wikimedia(monkeypatch):
    async def _google_fails(ref, width):
        raise PhotoError("Failed to fetch photo: 403")

    seen = {}

    async def _wikimedia(lat, lng, place_name):
        seen.update(lat=lat, lng=lng, place_name=place_name)
        return PhotoData(b"wiki", "image/jpeg")

    monkeypatch.setattr(photos, "_fetch_google_photo", _google_fails)
    monkeypatch.setattr(photos, "_fetch_wikimedia_photo", _wikimedia)

    key = PhotoKey("places/abc/photos/xyz", 400, lat=50.05, lng=19.93, place_name="Wawel")
    result = asyncio.run(photos.fetch_photo(key))

    assert result.data == b"wiki"
    assert seen == {"lat": 50.05, "lng": 19.93, "place_name": "Wawel"}
    assert photos.get_photo_call_stats() == {"photo": 1, "wikimedia_fallback": 1}


def test_google_failure_without_location_is_raised(monkeypatch):
    async def _google_fails(ref, width):
        raise PhotoError("Failed to fetch photo: 403")

    async def _wikimedia(*args):
        raise AssertionError("fallback must not run without coordinates")

    monkeypatch.setattr(photos, "_fetch_google_photo", _google_fails)
    monkeypatch.setattr(photos, "_fetch_wikimedia_photo", _wikimedia)

    with pytest.raises(PhotoError, match="403"):
        asyncio.run(photos.fetch_photo(PhotoKey("places/abc/photos/xyz", 400)))


def test_both_providers_failing_raises_photo_error(monkeypatch):
    async def _google_fails(ref, width):
        raise PhotoError("Failed to fetch photo: 500")

    async def _wikimedia(lat, lng, place_name):
        raise NoWikimediaPhotosFoundError(lat, lng, 100)

    monkeypatch.setattr(photos, "_fetch_google_photo", _google_fails)
    monkeypatch.setattr(photos, "_fetch_wikimedia_photo", _wikimedia)

    key = PhotoKey("places/abc/photos/xyz", 400, lat=1.0, lng=2.0)
    with pytest.raises(PhotoError, match="Google Places and Wikimedia"):
        asyncio.run(photos.fetch_photo(key))


def test_missing_key_is_a_config_error(monkeypatch, downloads):
    monkeypatch.setattr(photos, "GOOGLE_MAPS_API_KEY", None)

    with pytest.raises(MissingConfigError):
        asyncio.run(photos.fetch_photo(PhotoKey("places/abc/photos/xyz", 400, lat=1.0, lng=2.0)))
    assert downloads == []


def test_wikimedia_fallback_downloads_first_result(monkeypatch, downloads):
    def _search(lat, lng, radius, place_name):
        assert radius == config.WIKIMEDIA_SEARCH_RADIUS_M
        return [PlacePhoto(photo_reference="https://upload.wikimedia.org/1.jpg"), PlacePhoto(photo_reference="https://upload.wikimedia.org/2.jpg")]

    monkeypatch.setattr(photos.wikimedia, "search_photos_by_location", _search)

    asyncio.run(photos._fetch_wikimedia_photo(1.0, 2.0, None))

    assert downloads[0]["url"] == "https://upload.wikimedia.org/1.jpg"
