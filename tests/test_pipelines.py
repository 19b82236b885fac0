from gatc_extract.app import pipeline as app
from gatc_extract.config import parse_settings
from gatc_extract.image import pipeline as image
from gatc_extract.models import NOT_FOUND, ExtractionMode, ExtractionResult, FieldValue
from gatc_extract.rowstore import MemoryRowStore

PLAY = "https://play.google.com/store/apps/details?id=com.example.app"
APPLE = "https://apps.apple.com/us/app/example/id123456789"
URL = "https://adstransparency.google.com/advertiser/AR1/creative/CR1"
TS = "17/10/2026, 10:00:00 am"


def _cells(updates):
    return {u.column: u.value for u in updates}


def test_app_request_from_row_modes():
    metadata = app.request_from_row(2, ["", URL])
    assert metadata.needs_metadata and not metadata.needs_video_id

    video_only = app.request_from_row(3, ["King", URL, PLAY, "Royal Match", ""])
    assert not video_only.needs_metadata
    assert video_only.needs_video_id
    assert video_only.known_store_link == PLAY

    assert app.request_from_row(4, ["King", URL, PLAY, "Royal Match", "dQw4w9WgXcQ"]) is None
    assert app.request_from_row(5, ["", "", "", "", ""]) is None
    # A NOT_FOUND link is not a store link, so no video work is queued.
    assert app.request_from_row(6, ["", URL, "NOT_FOUND", "Royal Match", ""]) is None


def test_app_result_updates_skip_untouched_fields():
    request = app.request_from_row(3, ["King", URL, PLAY, "Royal Match", ""])
    result = ExtractionResult(video_id=NOT_FOUND)
    assert _cells(app.result_updates(request, result, TS)) == {"E": "NOT_FOUND", "M": TS}


def test_app_result_updates_full_row():
    request = app.request_from_row(2, ["", URL])
    result = ExtractionResult(
        advertiser_name=NOT_FOUND,
        app_name=FieldValue.found("Royal Match"),
        store_link=FieldValue.found(PLAY),
        video_id=FieldValue.found("dQw4w9WgXcQ"),
        is_video_ad=True,
    )
    assert _cells(app.result_updates(request, result, TS)) == {
        "C": PLAY,
        "D": "Royal Match",
        "E": "dQw4w9WgXcQ",
        "F": "Video Ad",
        "M": TS,
    }
    assert app.result_updates(request, ExtractionResult.blocked(), TS) == []


def test_app_pending_requests_respects_limit():
    store = MemoryRowStore({n: ["", f"{URL}{n}"] for n in range(2, 12)})
    settings = parse_settings(ExtractionMode.APP, ["--limit", "4"], environ={})
    pending = app.pending_requests(store, settings)
    assert [r.row_id for r in pending] == [2, 3, 4, 5]


def test_image_request_from_row():
    assert image.request_from_row(2, ["", URL]).mode is ExtractionMode.IMAGE
    assert image.request_from_row(3, ["", URL, PLAY]) is None
    partial = image.request_from_row(4, ["", URL, APPLE, "Royal Match", "https://img", ""])
    assert partial.known_store_link == APPLE
    assert image.request_from_row(5, ["", URL, APPLE, "Royal Match", "https://img", "Match and win"]) is None


def test_image_result_updates_write_rules():
    request = image.request_from_row(2, ["", URL])
    result = ExtractionResult(
        advertiser_name=FieldValue.found("King"),
        app_name=FieldValue.found("Royal Match"),
        store_link=NOT_FOUND,
        image_url=FieldValue.found("https://tpc.googlesyndication.com/simgad/1"),
        app_subtitle=NOT_FOUND,
    )
    assert _cells(image.result_updates(request, result, TS)) == {
        "A": "King",
        "D": "Royal Match",
        "E": "https://tpc.googlesyndication.com/simgad/1",
        "F": "NOT_FOUND",
        "M": TS,
    }


def test_image_result_updates_for_non_image_creative():
    request = image.request_from_row(2, ["", URL])
    cells = _cells(image.result_updates(request, ExtractionResult.skipped(), TS))
    assert cells == {"E": "NOT_FOUND", "F": "SKIP", "M": TS}
    assert image.result_updates(request, ExtractionResult.blocked(), TS) == []


def test_app_result_updates_record_non_video_format():
    request = app.request_from_row(2, ["", URL])
    result = ExtractionResult(app_name=FieldValue.found("Royal Match"), store_link=NOT_FOUND, video_id=NOT_FOUND)
    assert _cells(app.result_updates(request, result, TS))["F"] == "Text/Image Ad"
