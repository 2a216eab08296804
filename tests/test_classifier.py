import pytest

from finder.classifier import classify
from finder.models import QueryKind


@pytest.mark.parametrize(
    "query,expected",
    (
        ("chicken", QueryKind.simple),
        ("kosher dinner", QueryKind.simple),
        ("", QueryKind.simple),
        ("a b c d e", QueryKind.simple),
        ("spicy thai noodle soup", QueryKind.complex),
        ("I like chicken but not cheese", QueryKind.complex),
        ("pasta without cheese", QueryKind.complex),
        ("don't want fish", QueryKind.complex),
        ("everything except nuts", QueryKind.complex),
        ("beef or lamb", QueryKind.complex),
        ("rice and beans", QueryKind.complex),
        ("soup if vegan", QueryKind.complex),
        ("tofu instead of meat", QueryKind.complex),
    ),
)
def test_classify(query: str, expected: QueryKind) -> None:
    assert classify(query) == expected


def test_connector_words_inside_other_words_do_not_count() -> None:
    assert classify("andouille sausage") == QueryKind.simple
    assert classify("butter noodles") == QueryKind.simple
