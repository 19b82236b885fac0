from gatc_extract.text import (
    app_name_from_title,
    choose_advertiser_name,
    clean_app_name,
    clean_text,
    is_blacklisted_advertiser,
)


def test_clean_app_name_strips_invisible_characters_and_whitespace():
    assert clean_app_name("\u200bCandy\u2066  Crush \n Saga\u2069 ") == "Candy Crush Saga"


def test_clean_app_name_drops_css_leaks():
    assert clean_app_name(".title-bar color: red; Candy Crush 12px") == "Candy Crush"
    assert clean_app_name("height: 100px") is None
    assert clean_app_name("font-size") is None


def test_clean_app_name_keeps_text_before_marker_and_first_pipe_part():
    assert clean_app_name("Royal Match!@~!@~Install now") == "Royal Match"
    assert clean_app_name("Royal Match | Royal Match | Ad") == "Royal Match"


def test_clean_app_name_length_and_content_bounds():
    assert clean_app_name("A") is None
    assert clean_app_name("x" * 81) is None
    assert clean_app_name("12345") is None
    assert clean_app_name("*** ---") is None
    assert clean_app_name("") is None
    assert clean_app_name(None) is None


def test_clean_text_bounds_subtitles():
    assert clean_text("  Match three\u200b  and win  ") == "Match three and win"
    assert clean_text("y" * 201) is None
    assert clean_text("y" * 200) == "y" * 200


def test_choose_advertiser_name_skips_page_chrome():
    assert is_blacklisted_advertiser("Ad details")
    assert choose_advertiser_name(["", "Google Ads Transparency Center", " King.com Ltd "]) == "King.com Ltd"
    assert choose_advertiser_name([None, "About this ad"]) is None


def test_app_name_from_title():
    assert app_name_from_title("Royal Match - Apps on Google Play") == "Royal Match"
    assert app_name_from_title("Google Ads Transparency Center") is None
    assert app_name_from_title(None) is None
