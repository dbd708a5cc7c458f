"""
Tests for page extraction and the form protocol.

Tests cover:
- URL buckets (links, images, scripts, stylesheets) and form discovery
- Extraction idempotence
- Form selection by index and by attribute
- Parameter filling and form_satisfied()
- Form submission (GET / POST, action fallback, method validation)
"""

from urllib.parse import parse_qs

import pytest

from pagewalker.core.errors import NoFormSelectedError, UnsupportedMethodError
from pagewalker.core.session import UrlKind

BASE = "https://shop.example.com"

TWO_FORMS_HTML = """<html><body>
<form id="a" action="/first"><input name="one" value="1"></form>
<form id="b" data-role="main" method="get"><input name="two" value="2"></form>
</body></html>
"""


class TestExtraction:
    """Tests for parse()."""

    def test_url_buckets(self, session):
        session.open(f"{BASE}/")
        urls = session.urls

        assert urls[UrlKind.HYPERLINK] == [
            f"{BASE}/about",
            "https://other.example.org/x",
        ]
        assert urls[UrlKind.IMAGE] == [
            f"{BASE}/img/logo.PNG",
            f"{BASE}/photo.jpg",
        ]
        assert urls[UrlKind.SCRIPT] == [f"{BASE}/static/app.JS?v=2"]
        assert urls[UrlKind.STYLESHEET] == [f"{BASE}/static/site.css"]

    def test_unresolvable_urls_dropped(self, session):
        session.open(f"{BASE}/")
        assert all(session.urls[UrlKind.HYPERLINK])
        assert not any("broken" in u for u in session.urls[UrlKind.HYPERLINK])

    def test_forms_in_document_order(self, session):
        session.open(f"{BASE}/")
        assert [f.attr("id") for f in session.forms] == ["search", "login", "upload"]

    def test_parse_is_idempotent(self, session):
        session.open(f"{BASE}/")
        urls, forms = session.urls, session.forms

        session.parse()
        session.parse()

        assert session.urls == urls
        assert session.forms == forms
        assert len(session.forms) == 3

    def test_duplicates_kept(self, session, site):
        site.html("/dup", '<a href="/x">1</a><a href="/x">2</a>')
        session.open(f"{BASE}/dup")
        assert session.urls[UrlKind.HYPERLINK] == [f"{BASE}/x", f"{BASE}/x"]

    def test_page_text_and_elements_by_attr(self, session):
        session.open(f"{BASE}/")

        assert "Welcome" in session.page_text
        assert "inline()" not in session.page_text
        search = session.elements_by_attr("form", "method", "get")
        assert [f.attr("id") for f in search] == ["search"]


class TestFormSelection:
    """Tests for select_form() / select_form_by_attr()."""

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_out_of_range_clears_selection(self, session, index):
        session.open(f"{BASE}/")
        assert session.select_form(1)

        assert session.select_form(index) is False
        assert session.selected_form is None
        assert session.form_params == {}

    def test_params_loaded_from_inputs(self, session):
        session.open(f"{BASE}/")

        assert session.select_form(1)
        # later duplicate names win, inputs without value get ""
        assert session.form_params == {"user": "bob", "password": ""}
        assert len(session.form_input_fields()) == 3
        assert session.form_attrs() == {"id": "login", "action": "", "method": "POST"}

    def test_unnamed_inputs_skipped(self, session):
        session.open(f"{BASE}/")
        assert session.select_form(0)
        assert session.form_params == {"q": ""}

    def test_select_by_attr(self, session, site):
        site.html("/two", TWO_FORMS_HTML)
        session.open(f"{BASE}/two")

        assert session.select_form_by_attr("id", "b")
        assert session.selected_form == session.forms[1]
        assert session.form_params == {"two": "2"}

    def test_select_by_attr_no_match(self, session, site):
        site.html("/two", TWO_FORMS_HTML)
        session.open(f"{BASE}/two")
        session.select_form(0)

        assert session.select_form_by_attr("id", "c") is False
        assert session.selected_form is None
        assert session.form_params == {}

    def test_select_by_attr_without_forms(self, session):
        session.open(f"{BASE}/about")
        assert session.select_form_by_attr("id", "login") is False

    def test_get_form(self, session):
        session.open(f"{BASE}/")
        assert session.get_form(2).attr("id") == "upload"
        assert session.get_form(3) is None
        assert session.get_form(-1) is None
        assert session.get_form_by_id("login") == session.forms[1]
        assert session.get_form_by_id("missing") is None

    def test_nothing_selected(self, session):
        session.open(f"{BASE}/")
        assert session.form_input_fields() == []
        assert session.form_attrs() is None
        assert not session.form_satisfied()


class TestFormParams:
    """Tests for set_form_param() / form_satisfied()."""

    def test_set_param_requires_selection(self, session):
        session.open(f"{BASE}/")
        session.set_form_param("user", "mallory")
        assert session.get_form_param("user") is None

    def test_form_satisfied(self, session):
        session.open(f"{BASE}/")
        session.select_form(1)

        assert not session.form_satisfied()
        session.set_form_param("password", "secret")
        assert session.form_satisfied()
        session.set_form_param("user", "")
        assert not session.form_satisfied()

    def test_form_without_params_not_satisfied(self, session, site):
        site.html("/empty", '<form action="/x"><button>Go</button></form>')
        session.open(f"{BASE}/empty")
        assert session.select_form(0)
        assert not session.form_satisfied()


class TestSubmit:
    """Tests for submit_form()."""

    def test_requires_selection(self, session):
        session.open(f"{BASE}/")
        with pytest.raises(NoFormSelectedError):
            session.submit_form()

    def test_get_form_submission(self, session, site):
        session.open(f"{BASE}/")
        session.select_form_by_attr("id", "search")
        session.set_form_param("q", "shoes")

        session.submit_form()

        assert site.last.method == "GET"
        assert site.last.url.path == "/search"
        assert site.last.url.params["q"] == "shoes"
        assert session.page_title == "Results"
        assert session.history[-1] == session.page_url
        assert len(session.history) == 2
        assert session.selected_form is None

    def test_post_to_current_page_when_action_empty(self, session, site):
        session.open(f"{BASE}/account/login")
        session.select_form_by_attr("id", "login")
        session.set_form_param("password", "secret")

        session.submit_form()

        assert site.last.method == "POST"
        assert str(site.last.url) == f"{BASE}/account/login"
        assert parse_qs(site.last.content.decode()) == {
            "user": ["bob"], "password": ["secret"],
        }

    def test_missing_action_falls_back_to_page_url(self, session, site):
        site.html("/two", TWO_FORMS_HTML)
        session.open(f"{BASE}/two")
        session.select_form(1)

        session.submit_form()

        assert site.last.method == "GET"
        assert site.last.url.path == "/two"
        assert site.last.url.params["two"] == "2"

    def test_unsupported_method(self, session, site):
        session.open(f"{BASE}/")
        session.select_form_by_attr("id", "upload")
        requests = len(site.requests)

        with pytest.raises(UnsupportedMethodError) as exc_info:
            session.submit_form()

        assert "put" in str(exc_info.value)
        assert len(site.requests) == requests
        assert session.history == [f"{BASE}/"]

    def test_missing_method_is_rejected(self, session, site):
        site.html("/bare", '<html><body><form action="/x">'
                           '<input name="a" value="1"></form></body></html>')
        session.open(f"{BASE}/bare")
        session.select_form(0)
        requests = len(site.requests)

        with pytest.raises(UnsupportedMethodError):
            session.submit_form()

        assert len(site.requests) == requests
        assert session.page_url == f"{BASE}/bare"

    def test_submission_sends_cookies(self, session, site):
        session.open(f"{BASE}/")
        session.select_form(0)
        session.submit_form()
        assert "sid=abc" in site.last.headers["Cookie"]
