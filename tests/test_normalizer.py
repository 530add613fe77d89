import copy
import json

import pytest

from conftest import MODEL_ANALYSIS
from legalrelay.normalizer import (
    FALLBACK_QUESTIONS,
    compute_risk_score,
    degraded_result,
    normalize,
    overall_risk_from_score,
    parse_model_json,
    reading_time,
    strip_code_fences,
)

SOURCE = "word " * 400


@pytest.mark.parametrize(
    "favorable, moderate, critical, expected",
    [
        (0, 0, 0, 50),
        (1, 0, 0, 100),
        (0, 0, 3, 0),
        (0, 1, 0, 50),
        (1, 1, 0, 75),
        (0, 1, 3, 13),
        (2, 1, 1, 63),
        (1, 0, 2, 33),
    ],
)
def test_compute_risk_score(favorable, moderate, critical, expected):
    assert compute_risk_score(favorable, moderate, critical) == expected


def test_risk_score_is_bounded():
    for f in range(6):
        for m in range(6):
            for c in range(6):
                assert 0 <= compute_risk_score(f, m, c) <= 100


def test_overall_risk_from_score():
    assert overall_risk_from_score(100) == "Low"
    assert overall_risk_from_score(70) == "Low"
    assert overall_risk_from_score(50) == "Medium"
    assert overall_risk_from_score(39) == "High"


def test_reading_time():
    assert reading_time(0) == "1 minute"
    assert reading_time(1000) == "5 minutes"


def test_parse_model_json_strips_fences():
    raw = "```json\n" + json.dumps({"summary": {}}) + "\n```"
    assert parse_model_json(raw) == {"summary": {}}


def test_parse_model_json_repairs_trailing_comma():
    assert parse_model_json('{"redFlags": ["auto renewal",],}') == {"redFlags": ["auto renewal"]}


def test_parse_model_json_rejects_non_objects():
    assert parse_model_json("[1, 2, 3]") is None
    assert parse_model_json("") is None


def test_normalize_fills_missing_sections():
    result = normalize(json.dumps(MODEL_ANALYSIS), {}, SOURCE, "gpt-test")

    for key in ("legalReferences", "vagueTerms", "redFlags"):
        assert result[key] == []
    assert result["suggestedQuestions"] == FALLBACK_QUESTIONS
    assert result["summary"]["wordCount"] == 400
    assert result["summary"]["estimatedReadingTime"] == "2 minutes"
    assert result["flowchart"]["edges"][0]["label"] == ""


def test_normalize_recomputes_score_and_label():
    result = normalize(json.dumps(MODEL_ANALYSIS), {}, SOURCE, "gpt-test")

    risk = result["riskAssessment"]
    assert risk["riskScore"] == 75
    assert risk["overallRisk"] == "Medium"


def test_normalize_derives_missing_label_from_score():
    payload = {"riskAssessment": {"critical": [{"type": "Liability"}], "favorable": None}}

    risk = normalize(json.dumps(payload), {}, SOURCE, "gpt-test")["riskAssessment"]

    assert risk["riskScore"] == 0
    assert risk["overallRisk"] == "High"
    assert risk["favorable"] == []


def test_normalize_attaches_metadata():
    result = normalize(json.dumps({}), {"party1": "Acme"}, SOURCE, "gpt-test")

    meta = result["metadata"]
    assert meta["parties"] == {"party1": "Acme"}
    assert meta["model"] == "gpt-test"
    assert meta["analysisId"]
    assert "error" not in meta


def test_normalize_ignores_model_metadata_and_keeps_extra_keys():
    payload = {"metadata": {"analysisId": "from-model"}, "jurisdiction": "NY"}

    result = normalize(json.dumps(payload), {}, SOURCE, "gpt-test")

    assert result["metadata"]["analysisId"] != "from-model"
    assert result["jurisdiction"] == "NY"


def test_unknown_flowchart_node_type_becomes_process():
    payload = {"flowchart": {"nodes": [{"id": "n1", "type": "milestone"}]}}

    nodes = normalize(json.dumps(payload), {}, SOURCE, "gpt-test")["flowchart"]["nodes"]

    assert nodes[0]["type"] == "process"


def test_unparseable_output_degrades():
    result = normalize("not json at all", {}, SOURCE, "gpt-test")

    risk = result["riskAssessment"]
    assert risk["favorable"] == [] and risk["critical"] == []
    assert [f["type"] for f in risk["moderate"]] == ["Analysis Error"]
    assert risk["riskScore"] == 50
    assert result["metadata"]["error"] == "JSON parsing failed"
    assert len(result["suggestedQuestions"]) == 4


def _with(path, value):
    payload = copy.deepcopy(MODEL_ANALYSIS)
    target = payload
    for key in path[:-1]:
        target = target[key]
    if value is _MISSING:
        del target[path[-1]]
    else:
        target[path[-1]] = value
    return normalize(json.dumps(payload), {}, SOURCE, "gpt-test")


_MISSING = object()


def _assert_kept(result):
    assert "error" not in result["metadata"]
    assert [f["type"] for f in result["riskAssessment"]["moderate"]] == ["Late fees"]


def test_null_key_term_importance_defaults():
    result = _with(("keyTerms", 0, "importance"), None)

    _assert_kept(result)
    assert result["keyTerms"][0]["importance"] == "Medium"


def test_null_node_label_and_position_default():
    result = _with(("flowchart", "nodes", 0, "label"), None)
    _assert_kept(result)
    assert result["flowchart"]["nodes"][0]["label"] == ""

    result = _with(("flowchart", "nodes", 0, "position"), None)
    _assert_kept(result)
    assert result["flowchart"]["nodes"][0]["position"] == {"x": 0, "y": 0}

    result = _with(("flowchart", "nodes", 1, "position"), {"x": None, "y": "120"})
    _assert_kept(result)
    assert result["flowchart"]["nodes"][1]["position"] == {"x": 0, "y": 120}


def test_null_summary_fields_default():
    result = _with(("summary", "mainPurpose"), None)
    _assert_kept(result)
    assert result["summary"]["mainPurpose"] == ""

    result = _with(("summary", "documentType"), None)
    _assert_kept(result)
    assert result["summary"]["documentType"] == "Legal Document"


def test_null_suggested_answer_and_missing_question():
    result = _with(
        ("suggestedQuestions",),
        [{"question": "Can I cancel?", "answer": None}, {"answer": "orphan answer"}],
    )

    _assert_kept(result)
    assert result["suggestedQuestions"] == [{"question": "Can I cancel?", "answer": ""}]


def test_edges_without_ids_are_numbered():
    result = _with(("flowchart", "edges", 0, "id"), _MISSING)
    _assert_kept(result)
    assert result["flowchart"]["edges"][0]["id"] == "e1"

    result = _with(("flowchart", "edges"), [{"source": "n1"}, {"source": "n1", "target": "n2"}])
    _assert_kept(result)
    assert [(e["id"], e["target"]) for e in result["flowchart"]["edges"]] == [("e1", "n2")]


def test_nodes_without_ids_are_numbered():
    result = _with(("flowchart", "nodes", 1, "id"), None)

    _assert_kept(result)
    assert [n["id"] for n in result["flowchart"]["nodes"]] == ["n1", "n2"]


def test_object_entries_in_string_lists_are_flattened():
    result = _with(("redFlags",), [{"flag": "Auto renewal", "severity": "High"}, None, "Indemnity"])
    _assert_kept(result)
    assert result["redFlags"] == ["Auto renewal - High", "Indemnity"]

    result = _with(("recommendations",), "Negotiate the late fee")
    _assert_kept(result)
    assert result["recommendations"] == ["Negotiate the late fee"]


def test_bare_strings_in_object_lists_are_kept():
    result = _with(("riskAssessment", "critical"), ["Unlimited liability"])

    assert "error" not in result["metadata"]
    assert result["riskAssessment"]["critical"][0]["description"] == "Unlimited liability"
    assert result["riskAssessment"]["critical"][0]["type"] == "General"


def test_wrongly_shaped_section_degrades():
    result = _with(("riskAssessment",), "High risk overall")

    assert result["metadata"]["error"] == "Schema validation failed"
    assert [f["type"] for f in result["riskAssessment"]["moderate"]] == ["Analysis Error"]


def test_fences_inside_values_survive():
    raw = '```json\n{"redFlags": ["Clause quoted as ```terminate at will```"]}\n```'

    assert parse_model_json(raw) == {"redFlags": ["Clause quoted as ```terminate at will```"]}
    assert strip_code_fences("```\n{}\n```") == "{}"


def test_degraded_result_counts_words():
    result = degraded_result("one two three", {}, "gpt-test")

    assert result["summary"]["wordCount"] == 3
    assert result["recommendations"] == ["Please retry the analysis for detailed insights"]
