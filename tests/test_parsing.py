import json

from funding_finder.parsing import extract_json


def test_plain_object():
    assert extract_json('{"executiveSummary": "ok", "opportunities": []}') == {
        "executiveSummary": "ok",
        "opportunities": [],
    }


def test_markdown_fence_and_narrative_are_stripped():
    text = 'Here is what I found:\n```JSON\n{"executiveSummary": "fine"}\n```\nGood luck!'
    assert extract_json(text) == {"executiveSummary": "fine"}


def test_bold_keys_are_repaired():
    text = '{**executiveSummary**: "bold", "opportunities": []}'
    assert extract_json(text)["executiveSummary"] == "bold"


def test_top_level_array_is_wrapped():
    text = 'Results: [{"title": "A"}, {"title": "B"}] done'
    assert extract_json(text) == {"opportunities": [{"title": "A"}, {"title": "B"}]}


def test_single_object_array_is_wrapped_not_unwrapped():
    assert extract_json('[{"title": "A"}]') == {"opportunities": [{"title": "A"}]}


def test_array_holding_the_payload_returns_first_element():
    text = '[{"executiveSummary": "x", "opportunities": [{"title": "A"}]}]'
    assert extract_json(text) == {"executiveSummary": "x", "opportunities": [{"title": "A"}]}


def test_citation_list_is_not_a_payload():
    assert extract_json('["https://a.be", "https://b.be"]') == {}
    assert extract_json('Sources: [https://a.be]') == {}


def test_garbage_and_empty_inputs():
    assert extract_json(None) == {}
    assert extract_json("") == {}
    assert extract_json("I could not find anything, sorry.") == {}
    assert extract_json("{not json at all}") == {}
    assert extract_json("42") == {}


def test_bold_text_inside_values_is_left_alone():
    text = json.dumps({
        "executiveSummary": "ok",
        "strategicAdvice": "**Conseil**: postule tot.",
        "opportunities": [{"title": "A"}],
    })
    data = extract_json(text)
    assert data["executiveSummary"] == "ok"
    assert data["strategicAdvice"] == "**Conseil**: postule tot."
    assert data["opportunities"] == [{"title": "A"}]


def test_bold_text_inside_values_survives_narrative():
    text = 'Voici:\n{"executiveSummary": "**Bilan**: trois pistes", "opportunities": []}\nMerci'
    assert extract_json(text)["executiveSummary"] == "**Bilan**: trois pistes"


def test_single_item_array_with_narrative_is_wrapped():
    text = 'Voici: [{"title": "A", "provider": "SPW"}] bonne chance'
    assert extract_json(text) == {"opportunities": [{"title": "A", "provider": "SPW"}]}


def test_object_wins_when_it_opens_first():
    text = 'Result {"executiveSummary": "x", "opportunities": [{"title": "A"}]} see [1]'
    assert extract_json(text) == {"executiveSummary": "x", "opportunities": [{"title": "A"}]}
