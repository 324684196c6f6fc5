"""End-to-end tests for the tiered element resolver."""
import pytest
from conftest import FakeDetectionService, FakeReasoningClient, make_screenshot, raw

from screen_grounding.ai.chrome_classifier import ChromeFilterClassifier
from screen_grounding.ai.coordinate_guesser import CoordinateGuesser
from screen_grounding.ai.selector import ModelAssistedSelector
from screen_grounding.core.exceptions import DetectionServiceError, ReasoningServiceError, ResolutionError
from screen_grounding.core.resolver import (
    ElementResolver,
    InvalidTransitionError,
    ResolutionState,
    Tier,
)
from screen_grounding.vision.aggregator import ElementAggregator
from screen_grounding.vision.geometry import GeometricRefiner
from screen_grounding.vision.marker import SetOfMarkRenderer
from screen_grounding.vision.models import DetectionMethod, ResolutionContext, ResolutionRequest, Screenshot
from screen_grounding.vision.relevance_filter import RelevanceFilter

SAVE_SCENE = dict(
    objects=[raw((10, 100, 60, 150), "Button"), raw((300, 300, 400, 350), "Icon")],
    texts=[raw((100, 500, 180, 530), "Save", 0.9)],
)


class PassThroughFilter(RelevanceFilter):
    """Keeps every element so chrome-band picks reach the selector."""

    def apply(self, elements, filter_in_effect):
        return list(elements)


def build_resolver(settings, filter_cache, client, service, relevance_filter=None):
    return ElementResolver(
        aggregator=ElementAggregator(service, settings),
        classifier=ChromeFilterClassifier(client, filter_cache, settings),
        relevance_filter=relevance_filter or RelevanceFilter(settings),
        marker=SetOfMarkRenderer(settings),
        selector=ModelAssistedSelector(client, settings),
        guesser=CoordinateGuesser(client, settings),
        refiner=GeometricRefiner(settings=settings),
        settings=settings,
    )


def request(description, screenshot=None, **context):
    return ResolutionRequest(
        screenshot=screenshot or make_screenshot(800, 600),
        description=description,
        context=ResolutionContext(**context),
    )


async def test_selects_marked_text_element(settings, filter_cache):
    filter_cache.set("click Save", False)
    client = FakeReasoningClient('{"selected_mark": 3, "reasoning": "Save text"}')
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(**SAVE_SCENE))

    state = await resolver.run(request("click Save", active_app="TextEdit"))

    assert state.visited == [Tier.AGGREGATE, Tier.FILTER, Tier.SELECT, Tier.DONE]
    assert state.result.to_dict() == {
        "coordinates": {"x": 140, "y": 515},
        "confidence": 0.9,
        "method": "spatial_aware",
        "selectedElement": 'Text: "Save"',
    }
    # The selector saw the marked copy, not the original
    assert client.calls[0]["image"].data != state.request.screenshot.data


async def test_classifier_runs_before_selection_on_cache_miss(settings, filter_cache):
    client = FakeReasoningClient("false", '{"selected_mark": 3, "reasoning": "Save text"}')
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(**SAVE_SCENE))

    result = await resolver.resolve(request("click Save"))

    assert result.coordinates.as_tuple() == (140, 515)
    assert len(client.calls) == 2
    assert filter_cache.get("click save") is False


async def test_no_elements_goes_straight_to_guess(settings, filter_cache):
    client = FakeReasoningClient('{"x": 640, "y": 580, "confidence": 0.55}')
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(available=False))

    state = await resolver.run(request("message input"))

    assert state.visited == [Tier.AGGREGATE, Tier.FALLBACK_GUESS, Tier.DONE]
    assert state.result.method is DetectionMethod.VISION_API_FALLBACK
    assert state.result.coordinates.as_tuple() == (640, 580)
    assert state.result.selected_element is None


async def test_all_filtered_refines_guess_with_anchors(settings, filter_cache):
    filter_cache.set("open the hamburger menu", True)
    client = FakeReasoningClient('{"x": 15, "y": 15, "confidence": 0.6}')
    service = FakeDetectionService(logos=[raw((80, 10, 140, 30), "ChatGPT", 0.95)])
    resolver = build_resolver(settings, filter_cache, client, service)

    state = await resolver.run(request("open the hamburger menu", make_screenshot(500, 250)))

    assert state.visited == [Tier.AGGREGATE, Tier.FILTER, Tier.FALLBACK_GUESS, Tier.REFINE, Tier.DONE]
    assert state.result.coordinates.as_tuple() == (20, 20)
    assert state.result.confidence == pytest.approx(0.7)
    assert state.result.method is DetectionMethod.VISION_API_FALLBACK


async def test_unknown_mark_retries_once(settings, filter_cache):
    filter_cache.set("click Save", False)
    client = FakeReasoningClient(
        '{"selected_mark": 9, "reasoning": "?"}',
        '{"selected_mark": 3, "reasoning": "Save text"}',
    )
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(**SAVE_SCENE))

    state = await resolver.run(request("click Save"))

    assert state.visited == [Tier.AGGREGATE, Tier.FILTER, Tier.SELECT, Tier.SELECT, Tier.DONE]
    assert state.selection_attempts == 2
    assert state.result.method is DetectionMethod.SPATIAL_AWARE


async def test_second_bad_mark_escalates_to_guess(settings, filter_cache):
    filter_cache.set("click Save", False)
    client = FakeReasoningClient(
        '{"selected_mark": 9, "reasoning": "?"}',
        '{"selected_mark": 9, "reasoning": "?"}',
        '{"x": 141, "y": 516, "confidence": 0.5}',
    )
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(**SAVE_SCENE))

    state = await resolver.run(request("click Save"))

    assert state.visited == [
        Tier.AGGREGATE,
        Tier.FILTER,
        Tier.SELECT,
        Tier.SELECT,
        Tier.FALLBACK_GUESS,
        Tier.REFINE,
        Tier.DONE,
    ]
    # No layout pattern applies, so the guess passes through refinement untouched
    assert state.result.coordinates.as_tuple() == (141, 516)
    assert state.result.confidence == 0.5


async def test_no_match_escalates_without_retry(settings, filter_cache):
    filter_cache.set("click Save", False)
    client = FakeReasoningClient(
        '{"selected_mark": null, "reasoning": "nothing"}',
        '{"x": 10, "y": 10, "confidence": 0.3}',
    )
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(**SAVE_SCENE))

    state = await resolver.run(request("click Save"))

    assert state.visited.count(Tier.SELECT) == 1
    assert Tier.FALLBACK_GUESS in state.visited
    assert state.result.method is DetectionMethod.VISION_API_FALLBACK


async def test_chrome_band_pick_retries_without_band(settings, filter_cache):
    filter_cache.set("click Save", True)
    service = FakeDetectionService(
        texts=[raw((10, 5, 60, 25), "Save"), raw((100, 500, 180, 530), "Save")],
    )
    client = FakeReasoningClient(
        '{"selected_mark": 1, "reasoning": "top Save"}',
        '{"selected_mark": 2, "reasoning": "page Save"}',
    )
    resolver = build_resolver(settings, filter_cache, client, service, PassThroughFilter(settings))

    state = await resolver.run(request("click Save"))

    assert state.visited == [Tier.AGGREGATE, Tier.FILTER, Tier.SELECT, Tier.SELECT, Tier.DONE]
    assert [el.id for el in state.candidates] == [2]
    assert "[1]" not in client.calls[1]["prompt"]
    assert state.result.coordinates.as_tuple() == (140, 515)


async def test_selector_failure_escalates_to_guess(settings, filter_cache):
    filter_cache.set("click Save", False)
    client = FakeReasoningClient(
        ReasoningServiceError("upstream 500"),
        '{"x": 139, "y": 514, "confidence": 0.5}',
    )
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(**SAVE_SCENE))

    state = await resolver.run(request("click Save"))

    assert state.visited[-3:] == [Tier.FALLBACK_GUESS, Tier.REFINE, Tier.DONE]
    assert state.result.coordinates.as_tuple() == (139, 514)


async def test_guess_failure_raises_resolution_error(settings, filter_cache):
    client = FakeReasoningClient("no idea")
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(available=False))

    with pytest.raises(ResolutionError) as excinfo:
        await resolver.resolve(request("the missing button"))
    assert excinfo.value.description == "the missing button"


async def test_tiered_detection_disabled_skips_detection(settings, filter_cache):
    settings.tiered_detection_enabled = False
    service = FakeDetectionService(**SAVE_SCENE)
    client = FakeReasoningClient('{"x": 5, "y": 6, "confidence": 0.4}')
    resolver = build_resolver(settings, filter_cache, client, service)

    state = await resolver.run(request("click Save"))

    assert state.visited == [Tier.FALLBACK_GUESS, Tier.DONE]
    assert service.calls == []
    assert state.result.coordinates.as_tuple() == (5, 6)


async def test_detect_element_convenience(settings, filter_cache):
    filter_cache.set("click Save", False)
    client = FakeReasoningClient('{"selected_mark": 3, "reasoning": "Save text"}')
    resolver = build_resolver(settings, filter_cache, client, FakeDetectionService(**SAVE_SCENE))

    result = await resolver.detect_element(make_screenshot(800, 600), "click Save")
    assert result.selected_element == 'Text: "Save"'


def test_undefined_edge_is_rejected():
    state = ResolutionState(request=request("anything"))
    assert state.visited == [Tier.AGGREGATE]
    with pytest.raises(InvalidTransitionError):
        state.advance(Tier.REFINE)


async def test_failed_selection_refines_against_all_detected_elements(settings, filter_cache):
    # The small "Jane" label is dropped as tiny text but still anchors the profile pattern
    filter_cache.set("click profile jane", True)
    service = FakeDetectionService(
        texts=[raw((1300, 60, 1340, 72), "Jane")],
        objects=[raw((600, 400, 700, 450), "Button")],
    )
    client = FakeReasoningClient(
        '{"selected_mark": null, "reasoning": "no profile control marked"}',
        '{"x": 1310, "y": 40, "confidence": 0.6}',
    )
    resolver = build_resolver(settings, filter_cache, client, service)

    state = await resolver.run(request("click profile jane", make_screenshot(1440, 900)))

    assert [el.label for el in state.candidates] == ['Object: "Button"']
    assert len(state.anchors) == 2
    assert state.visited[-3:] == [Tier.FALLBACK_GUESS, Tier.REFINE, Tier.DONE]
    assert state.result.coordinates.as_tuple() == (1320, 30)
    assert state.result.confidence == pytest.approx(0.7)


async def test_all_backends_failing_routes_to_guess(settings, filter_cache):
    failure = DetectionServiceError("backend down")
    service = FakeDetectionService(texts=failure, objects=failure, logos=failure)
    client = FakeReasoningClient('{"x": 40, "y": 50, "confidence": 0.45}')
    resolver = build_resolver(settings, filter_cache, client, service)

    state = await resolver.run(request("click Save"))

    assert sorted(service.calls) == ["logo", "object", "text"]
    assert state.visited == [Tier.AGGREGATE, Tier.FALLBACK_GUESS, Tier.DONE]
    assert state.result.method is DetectionMethod.VISION_API_FALLBACK
    assert state.result.coordinates.as_tuple() == (40, 50)


async def test_refinement_uses_configured_default_size(settings, filter_cache):
    settings.default_image_width = 500
    settings.default_image_height = 250
    filter_cache.set("open the hamburger menu", True)
    service = FakeDetectionService(logos=[raw((80, 10, 140, 30), "ChatGPT", 0.95)])
    client = FakeReasoningClient('{"x": 15, "y": 15, "confidence": 0.6}')
    resolver = build_resolver(settings, filter_cache, client, service)
    undecodable = Screenshot(data=b"not an image")

    state = await resolver.run(request("open the hamburger menu", undecodable))

    # Anchor candidate (20, 20) only lies in the top-left region on a 500x250 screen
    assert state.result.coordinates.as_tuple() == (20, 20)
