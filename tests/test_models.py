from gatc_extract.models import (
    NOT_FOUND,
    SKIP,
    ExtractionMode,
    ExtractionRequest,
    ExtractionResult,
    FieldValue,
    Outcome,
    applicable_fields,
)

PLAY = "https://play.google.com/store/apps/details?id=com.example.app"


def _app_request(**kw) -> ExtractionRequest:
    return ExtractionRequest(url="https://adstransparency.google.com/x", row_id=2, mode=ExtractionMode.APP, **kw)


def test_field_value_of_and_cell():
    assert FieldValue.of("  Royal Match ").cell() == "Royal Match"
    assert FieldValue.of("") is NOT_FOUND
    assert FieldValue.of(None).cell() == "NOT_FOUND"
    assert SKIP.cell() == "SKIP"


def test_result_defaults_to_skip_for_every_field():
    result = ExtractionResult()
    assert result.is_skipped
    assert not result.is_blocked
    assert set(result.as_row().values()) == {"SKIP", "FALSE"}


def test_result_demotes_invalid_store_link_and_video_id():
    result = ExtractionResult(
        store_link=FieldValue.found("https://example.com/app"),
        video_id=FieldValue.found("nope"),
    )
    assert result.store_link.outcome is Outcome.NOT_FOUND
    assert result.video_id.outcome is Outcome.NOT_FOUND


def test_blocked_and_error_results_are_uniform():
    assert set(ExtractionResult.blocked().as_row().values()) == {"BLOCKED", "FALSE"}
    assert ExtractionResult.blocked().is_blocked
    assert ExtractionResult.error().is_error


def test_applicable_fields_for_app_requests():
    assert applicable_fields(_app_request(needs_metadata=True)) == {"advertiser_name", "app_name", "store_link"}
    video_only = _app_request(known_store_link=PLAY, needs_metadata=False, needs_video_id=True)
    assert applicable_fields(video_only) == {"video_id"}


def test_applicable_fields_for_image_requests():
    request = ExtractionRequest(url="u", row_id=3, mode=ExtractionMode.IMAGE)
    assert "image_url" in applicable_fields(request)
    assert "video_id" not in applicable_fields(request)


def test_exhausted_marks_every_applicable_field_not_found():
    result = ExtractionResult.exhausted(_app_request(needs_metadata=True))
    assert result.advertiser_name is NOT_FOUND
    assert result.app_name is NOT_FOUND
    assert result.store_link is NOT_FOUND
    assert result.video_id is SKIP
    assert result.image_url is SKIP
    assert not result.is_video_ad


def test_exhausted_video_request_only_touches_video_id():
    request = _app_request(needs_metadata=False, needs_video_id=True, known_store_link=PLAY)
    result = ExtractionResult.exhausted(request)
    assert result.video_id is NOT_FOUND
    assert result.app_name is SKIP


def test_for_attempt_returns_copy():
    request = _app_request()
    assert request.for_attempt(3).attempt == 3
    assert request.attempt == 1
