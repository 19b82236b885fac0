from gatc_extract.blocking import NOT_BLOCKED, classify


def test_classify_http_429():
    verdict = classify(429, "")
    assert verdict.blocked
    assert verdict.reason == "http_429"


def test_classify_markers_case_insensitive():
    verdict = classify(200, "<html><body>Our systems have detected UNUSUAL traffic</body></html>")
    assert verdict.blocked
    assert verdict.reason == "our systems have detected unusual traffic"
    assert classify(200, '<div class="g-recaptcha"></div>').blocked


def test_classify_clean_page():
    assert classify(200, "<html><body>creative</body></html>") is NOT_BLOCKED
    assert classify(None, None) is NOT_BLOCKED
