import requests

from gatc_extract.restart import trigger_self_restart


class _Response:
    def __init__(self, status_code):
        self.status_code = status_code


class _Session:
    def __init__(self, status_code=204, error=None):
        self.status_code = status_code
        self.error = error
        self.posts = []

    def post(self, url, **kw):
        self.posts.append((url, kw))
        if self.error:
            raise self.error
        return _Response(self.status_code)


def test_restart_posts_repository_dispatch():
    session = _Session()
    assert trigger_self_restart("acme/ads", "tok", "app_data_trigger", reason="session_budget", session=session)
    url, kw = session.posts[0]
    assert url == "https://api.github.com/repos/acme/ads/dispatches"
    assert kw["json"] == {"event_type": "app_data_trigger"}
    assert kw["headers"]["Authorization"] == "token tok"


def test_restart_skipped_without_credentials():
    session = _Session()
    assert not trigger_self_restart(None, "tok", "e", reason="r", session=session)
    assert not trigger_self_restart("acme/ads", "", "e", reason="r", session=session)
    assert session.posts == []


def test_restart_failures_are_reported_not_raised():
    assert not trigger_self_restart("acme/ads", "tok", "e", reason="r", session=_Session(status_code=404))
    failing = _Session(error=requests.ConnectionError("down"))
    assert not trigger_self_restart("acme/ads", "tok", "e", reason="r", session=failing)
