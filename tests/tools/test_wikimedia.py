"""Tests for the Wikimedia Commons photo search."""

from __future__ import annotations

import httpx
import pytest

from errors import NoWikimediaPhotosFoundError, WikimediaAPIError
from tools import wikimedia


def _page(title, url="https://upload.wikimedia.org/a.jpg", **meta):
    return {
        "title": title,
        "imageinfo": [{
            "url": url,
            "descriptionurl": "https://commons.wikimedia.org/wiki/" + title.replace(" ", "_"),
            "width": 1024,
            "height": 768,
            "extmetadata": {k: {"value": v} for k, v in meta.items()},
        }],
    }


def test_search_maps_pages_to_photos(monkeypatch, fake_response):
    captured = {}
    payload = {"query": {"pages": {
        "1": _page("File:Wawel Castle.jpg", Artist='<a href="/u">Jan Kowalski</a>',
                   LicenseShortName="CC BY-SA 4.0", Credit="<span>Own work</span>"),
    }}}

    def _fake_request(method, url, **kw):
        captured.update(url=url, params=kw["params"], headers=kw["headers"])
        return fake_response(payload)

    monkeypatch.setattr(wikimedia, "_request", _fake_request)

    photos = wikimedia.search_photos_by_location(50.054, 19.935, 100)

    assert captured["url"] == wikimedia.COMMONS_API_URL
    assert captured["params"]["ggscoord"] == "50.054|19.935"
    assert captured["params"]["ggsnamespace"] == "6"
    assert captured["headers"]["User-Agent"] == wikimedia.USER_AGENT
    assert len(photos) == 1
    photo = photos[0]
    assert photo.photo_reference == "https://upload.wikimedia.org/a.jpg"
    assert (photo.width, photo.height) == (1024, 768)
    assert photo.attributions == [
        "Artist: Jan Kowalski",
        "License: CC BY-SA 4.0",
        "Credit: Own work",
        "Source: https://commons.wikimedia.org/wiki/File:Wawel_Castle.jpg",
    ]


@pytest.mark.parametrize("radius, expected", [(1, "10"), (500, "500"), (99999, "10000")])
def test_radius_is_clamped(monkeypatch, fake_response, radius, expected):
    captured = {}

    def _fake_request(method, url, **kw):
        captured.update(kw["params"])
        return fake_response({"query": {"pages": {"1": _page("File:x.jpg")}}})

    monkeypatch.setattr(wikimedia, "_request", _fake_request)

    wikimedia.search_photos_by_location(0.0, 0.0, radius)

    assert captured["ggsradius"] == expected


def test_place_name_filters_titles(monkeypatch, fake_response):
    payload = {"query": {"pages": {
        "1": _page("File:Wawel Castle at dusk.jpg", url="https://u/1.jpg"),
        "2": _page("File:Random street.jpg", url="https://u/2.jpg"),
    }}}
    monkeypatch.setattr(wikimedia, "_request", lambda *a, **kw: fake_response(payload))

    photos = wikimedia.search_photos_by_location(50.0, 19.9, 100, place_name="wawel castle")

    assert [p.photo_reference for p in photos] == ["https://u/1.jpg"]


def test_no_pages_raises_not_found(monkeypatch, fake_response):
    monkeypatch.setattr(wikimedia, "_request", lambda *a, **kw: fake_response({"batchcomplete": ""}))

    with pytest.raises(NoWikimediaPhotosFoundError) as exc:
        wikimedia.search_photos_by_location(1.0, 2.0, 100)
    assert exc.value.radius == 100


def test_name_filter_excluding_everything_raises_not_found(monkeypatch, fake_response):
    payload = {"query": {"pages": {"1": _page("File:Something else.jpg")}}}
    monkeypatch.setattr(wikimedia, "_request", lambda *a, **kw: fake_response(payload))

    with pytest.raises(NoWikimediaPhotosFoundError):
        wikimedia.search_photos_by_location(1.0, 2.0, 100, place_name="Wawel")


def test_http_error_raises_api_error(monkeypatch):
    def _boom(method, url, **kw):
        request = httpx.Request(method, url)
        raise httpx.HTTPStatusError("bad", request=request, response=httpx.Response(500, request=request))

    monkeypatch.setattr(wikimedia, "_request", _boom)

    with pytest.raises(WikimediaAPIError, match="500"):
        wikimedia.search_photos_by_location(1.0, 2.0, 100)


def test_malformed_payload_raises_api_error(monkeypatch, fake_response):
    payload = {"query": {"pages": {"1": {"title": "File:x.jpg", "imageinfo": [{"width": 1}]}}}}
    monkeypatch.setattr(wikimedia, "_request", lambda *a, **kw: fake_response(payload))

    with pytest.raises(WikimediaAPIError):
        wikimedia.search_photos_by_location(1.0, 2.0, 100)


def test_strip_html():
    assert wikimedia.strip_html("<b>Bold</b> text ") == "Bold text"
