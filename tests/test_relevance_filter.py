"""Tests for the relevance filter and the cached menu-bar decision."""
from conftest import FakeReasoningClient, make_element

from screen_grounding.ai.chrome_classifier import ChromeFilterClassifier, keyword_decision
from screen_grounding.core.exceptions import ReasoningServiceError
from screen_grounding.vision.models import ElementSource
from screen_grounding.vision.relevance_filter import RelevanceFilter, in_chrome_band

MENU_FILE = make_element(1, (10, 5, 40, 25), 'Text: "File"')
TINY_TEXT = make_element(2, (100, 100, 110, 110), 'Text: "ok"')
SAVE = make_element(3, (100, 500, 180, 530), 'Text: "Save"')
TINY_OBJECT = make_element(4, (300, 100, 310, 110), 'Object: "Dot"', source=ElementSource.OBJECT)


class TestRelevanceFilter:
    def test_chrome_band_uses_vertical_center(self):
        assert in_chrome_band(MENU_FILE, 30)
        assert not in_chrome_band(make_element(5, (10, 20, 40, 50)), 30)

    def test_filtering_removes_band_and_tiny_text(self, settings):
        kept = RelevanceFilter(settings).apply([MENU_FILE, TINY_TEXT, SAVE, TINY_OBJECT], True)
        assert kept == [SAVE, TINY_OBJECT]

    def test_no_filtering_keeps_everything(self, settings):
        elements = [MENU_FILE, TINY_TEXT, SAVE]
        kept = RelevanceFilter(settings).apply(elements, False)
        assert kept == elements
        assert kept is not elements

    def test_exclude_chrome_band_keeps_small_text(self, settings):
        assert RelevanceFilter(settings).exclude_chrome_band([MENU_FILE, TINY_TEXT]) == [TINY_TEXT]


class TestChromeFilterClassifier:
    async def test_decision_is_cached_per_description(self, settings, filter_cache):
        client = FakeReasoningClient("true")
        classifier = ChromeFilterClassifier(client, filter_cache, settings)

        assert await classifier.should_filter("Open TextEdit application") is True
        assert await classifier.should_filter("  open textedit APPLICATION") is True
        assert len(client.calls) == 1
        assert filter_cache.stats()["hits"] == 1

    async def test_model_answer_false(self, settings, filter_cache):
        client = FakeReasoningClient("false")
        classifier = ChromeFilterClassifier(client, filter_cache, settings)
        assert await classifier.should_filter("Click File menu and select Save") is False
        assert "Click File menu" in client.calls[0]["prompt"]
        assert client.calls[0]["image"] is None

    async def test_keyword_fallback_on_service_error_is_cached(self, settings, filter_cache):
        client = FakeReasoningClient(ReasoningServiceError("rate limited"))
        classifier = ChromeFilterClassifier(client, filter_cache, settings)

        assert await classifier.should_filter("Open the Slack window") is True
        assert await classifier.should_filter("Open the Slack window") is True
        assert len(client.calls) == 1

    async def test_keyword_fallback_on_unparseable_answer(self, settings, filter_cache):
        classifier = ChromeFilterClassifier(FakeReasoningClient("perhaps"), filter_cache, settings)
        assert await classifier.should_filter("click Save") is False

    async def test_unavailable_client_is_not_called(self, settings, filter_cache):
        client = FakeReasoningClient("false", available=False)
        classifier = ChromeFilterClassifier(client, filter_cache, settings)
        assert await classifier.should_filter("Open TextEdit") is True
        assert client.calls == []


def test_keyword_decision():
    assert keyword_decision("Bring the Finder WINDOW forward")
    assert not keyword_decision("click Save")


async def test_unexpected_client_error_uses_cached_keyword_decision(settings, filter_cache):
    client = FakeReasoningClient(IndexError("list index out of range"))
    classifier = ChromeFilterClassifier(client, filter_cache, settings)

    assert await classifier.should_filter("Open the Notes application") is True
    assert filter_cache.get("open the notes application") is True
    assert len(client.calls) == 1
