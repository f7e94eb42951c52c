import pytest

from evidence_graph.config import ExtractionConfig
from evidence_graph.extraction import (
    DEFAULT_TABLES,
    compute_audit,
    extract_referenced_ids,
    extract_statements,
    high_confidence_statements,
    is_substantive,
    project_paragraphs,
    split_paragraphs,
    split_sentences,
    statements_by_model,
    strip_inline_markdown,
)
from evidence_graph.models import STANCE_PRIORITY


def test_backup_sentences_extract_as_sequenced_prerequisites():
    result = extract_statements([
        (1, "You should back up your data before upgrading."),
        (2, "It's recommended to create a backup prior to upgrading."),
    ])
    assert len(result.statements) == 2
    first, second = result.statements
    assert first.model_index == 1 and second.model_index == 2
    for stmt in result.statements:
        assert stmt.stance == "prerequisite"
        assert stmt.signals.sequence is True
    assert result.meta.partial is False


def test_every_statement_has_exactly_one_stance_and_bounded_confidence():
    text = (
        "You should always use strong passwords for every account.\n\n"
        "Never reuse the same password across different websites.\n\n"
        "Password managers might help some people in certain cases.\n\n"
        "The encryption standard is widely adopted by most vendors."
    )
    result = extract_statements([(0, text)])
    assert len(result.statements) == 4
    for stmt in result.statements:
        assert stmt.stance in STANCE_PRIORITY
        assert 0.0 <= stmt.confidence <= 1.0


def test_confidence_grows_with_match_count():
    # "should", "always", "use": three prescriptive cues
    assert DEFAULT_TABLES.classify_stance("You should always use strong passwords.") == ("prescriptive", 0.95)
    assert DEFAULT_TABLES.classify_stance("Never reuse the same password anywhere.") == ("cautionary", 0.65)
    assert DEFAULT_TABLES.classify_stance("Quiet green hills roll away.") == ("assertive", 0.5)


def test_priority_order_beats_match_count():
    # one prerequisite cue outranks several prescriptive ones
    stance, _ = DEFAULT_TABLES.classify_stance("You should always ensure backups exist before migrating.")
    assert stance == "prerequisite"


def test_hard_exclusions_drop_questions_but_soft_rules_do_not():
    assert DEFAULT_TABLES.is_excluded("Should you always use the newest version?", "prescriptive")
    soft = "If the cache is cold you should warm it up first thing."
    assert not DEFAULT_TABLES.is_excluded(soft, "prescriptive")
    ids = [v["id"] for v in DEFAULT_TABLES.exclusion_violations(soft, "prescriptive")]
    assert "prescriptive_conditional_should" in ids


def test_meta_commentary_and_short_fragments_are_not_substantive():
    assert not is_substantive("Let me explain how this works in detail.")
    assert not is_substantive("In summary, the approach works well overall.")
    assert not is_substantive("Too short here.")
    assert not is_substantive("## Installation steps for the tool")
    assert not is_substantive("| col a | col b | col c |")
    assert is_substantive("The service restarts automatically after a crash.")


def test_sentence_split_protects_abbreviations_and_numbers():
    sentences = split_sentences("Dr. Smith uses version 3.5 daily. It works e.g. on Linux. Done!")
    assert sentences == ["Dr. Smith uses version 3.5 daily.", "It works e.g. on Linux.", "Done!"]


def test_split_paragraphs_on_blank_lines():
    assert split_paragraphs("a\r\n\r\nb\n   \nc") == ["a", "b", "c"]
    assert split_paragraphs("") == []


def test_empty_sources_are_skipped():
    result = extract_statements([(0, ""), (1, None), (2, "   ")])
    assert result.statements == []
    assert result.meta.partial is False


def test_sentence_limit_returns_partial_result():
    text = " ".join(f"The server number {i} handles all incoming requests." for i in range(10))
    result = extract_statements([(0, text)], ExtractionConfig(sentence_limit=3))
    assert len(result.statements) == 3
    assert result.meta.partial is True
    assert result.meta.partial_reason == "sentence_limit"


def test_candidate_limit_returns_partial_result():
    text = " ".join(f"The server number {i} handles all incoming requests." for i in range(10))
    result = extract_statements([(0, text)], ExtractionConfig(candidate_limit=2))
    assert len(result.statements) == 2
    assert result.meta.partial_reason == "candidate_limit"


def test_extraction_is_deterministic():
    sources = [(0, "You must pin versions before deploying.\n\nCaching might help in some cases.")]
    a = extract_statements(sources)
    b = extract_statements(sources)
    assert [s.model_dump() for s in a.statements] == [s.model_dump() for s in b.statements]
    assert a.meta.model_dump(exclude={"processing_time_ms"}) == b.meta.model_dump(exclude={"processing_time_ms"})


def test_paragraph_projection_groups_and_marks_contested():
    text = (
        "You should always use strong passwords for accounts. Never reuse the same password across websites.\n\n"
        "The encryption standard is widely adopted by most vendors."
    )
    extraction = extract_statements([(0, text), (1, "Backups are stored in three separate regions.")])
    projection = project_paragraphs(extraction.statements)
    paragraphs = projection.paragraphs

    assert [p.id for p in paragraphs] == ["p_0", "p_1", "p_2"]
    assert [(p.model_index, p.paragraph_index) for p in paragraphs] == [(0, 0), (0, 1), (1, 0)]

    first = paragraphs[0]
    assert first.statement_ids == ["s_0", "s_1"]
    assert first.contested is True
    assert first.dominant_stance == "cautionary"
    assert projection.meta.contested_count == 1
    assert paragraphs[1].contested is False


def test_prerequisite_with_dependent_is_not_contested():
    text = "Install the drivers before running setup. After the reboot, the device is ready to use."
    projection = project_paragraphs(extract_statements([(0, text)]).statements)
    assert len(projection.paragraphs) == 1
    para = projection.paragraphs[0]
    assert set(para.stance_hints) == {"prerequisite", "dependent"}
    assert para.contested is False


def test_query_helpers():
    extraction = extract_statements([
        (0, "You should always use strong passwords for accounts."),
        (1, "The encryption standard is widely adopted by most vendors."),
    ])
    assert [s.model_index for s in statements_by_model(extraction.statements, 1)] == [1]
    assert [s.id for s in high_confidence_statements(extraction.statements)] == ["s_0"]


def test_strip_inline_markdown():
    assert strip_inline_markdown("- **Use** `pip` via [the docs](http://x)") == "Use pip via the docs"


def test_audit_lists_unreferenced_statements():
    extraction = extract_statements([
        (0, "You should back up your data before upgrading."),
        (1, "The encryption standard is widely adopted by most vendors."),
    ])
    referenced = extract_referenced_ids([{"id": "c1", "sourceStatementIds": ["s_0"]}])
    result = compute_audit(extraction, referenced, "how do I back up data")
    assert result.audit.referenced_count == 1
    assert result.audit.unreferenced_count == 1
    assert result.unreferenced[0].statement.id == "s_1"


@pytest.mark.parametrize("claims", [None, [], ["not a mapping"]])
def test_referenced_ids_tolerate_malformed_claims(claims):
    assert extract_referenced_ids(claims) == set()
