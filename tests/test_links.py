import requests

from funding_finder.links import check_link, extract_title


class FakeResponse:
    def __init__(self, status_code=200, text="", content_type="text/html; charset=utf-8"):
        self.status_code = status_code
        self.text = text
        self.headers = {"Content-Type": content_type}


class FakeSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def get(self, url, headers=None, timeout=None, allow_redirects=True):
        self.calls.append((url, headers, timeout))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_reachable_page_reports_its_title():
    html = "<html><head><title>\n  Appel à projets   Culture </title></head><body>x</body></html>"
    session = FakeSession(FakeResponse(text=html))
    check = check_link("https://culture.be/appel", session=session)
    assert check.reachable is True
    assert check.page_title == "Appel à projets Culture"
    assert "User-Agent" in session.calls[0][1]


def test_non_html_documents_have_no_title():
    check = check_link("https://x.be/a.pdf", session=FakeSession(FakeResponse(text="%PDF", content_type="application/pdf")))
    assert check.reachable is True
    assert check.page_title is None


def test_missing_pages_are_dead():
    assert check_link("https://x.be", session=FakeSession(FakeResponse(status_code=404))).reachable is False
    assert check_link("https://x.be", session=FakeSession(FakeResponse(status_code=410))).reachable is False


def test_blocked_or_failing_sites_stay_unverified():
    for status in (401, 403, 429, 500, 503):
        assert check_link("https://x.be", session=FakeSession(FakeResponse(status_code=status))).reachable is None


def test_unresolvable_host_is_dead():
    session = FakeSession(requests.exceptions.ConnectionError("Name or service not known"))
    assert check_link("https://nope.invalid", session=session).reachable is False


def test_timeouts_stay_unverified():
    assert check_link("https://slow.be", session=FakeSession(requests.exceptions.ReadTimeout("slow"))).reachable is None
    assert check_link("https://slow.be", session=FakeSession(requests.exceptions.ConnectTimeout("slow"))).reachable is None


def test_extract_title_without_title_tag():
    assert extract_title("<html><body>No title</body></html>") is None
    assert extract_title("<title>  </title>") is None
