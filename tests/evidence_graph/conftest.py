import pytest

from .factories import make_paragraph, unit


@pytest.fixture
def two_group_embeddings():
    """Six paragraphs in two tight, mutually distant groups."""
    return {
        "p_0": unit(1, 0, 0, 0),
        "p_1": unit(0.99, 0.1, 0, 0),
        "p_2": unit(0.99, 0, 0.1, 0),
        "p_3": unit(0, 0, 0, 1),
        "p_4": unit(0, 0.1, 0, 0.99),
        "p_5": unit(0, 0, 0.1, 0.99),
    }


@pytest.fixture
def two_group_paragraphs():
    stances = ["prescriptive", "prescriptive", "prescriptive", "cautionary", "cautionary", "cautionary"]
    return [
        make_paragraph(f"p_{i}", model_index=i % 3, statement_ids=[f"s_{i}"], stance=stances[i], paragraph_index=i)
        for i in range(6)
    ]
