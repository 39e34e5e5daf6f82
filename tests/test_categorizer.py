"""Tests for keyword based section assignment."""

from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from newsdesk.processors.categorizer import (  # noqa: E402
    DEFAULT_CATEGORY,
    Categorizer,
    categorize_article,
    keyword_weight,
    score_categories,
)


def test_keyword_weight_grows_with_length():
    assert keyword_weight("gol") == 1
    assert keyword_weight("fútbol") == 2
    assert keyword_weight("wall street") == 4  # 11 chars with a space
    assert keyword_weight("calentamiento global") == 5


def test_score_categories_sorted_highest_first():
    scores = score_categories("inflación y dólar: la bolsa cae")
    assert scores[0][0] == "Economía"
    assert all(score > 0 for _, score in scores)
    assert [s for _, s in scores] == sorted((s for _, s in scores), reverse=True)


def test_star_athlete_wins_over_other_sections():
    assert categorize_article("Messi marcó dos goles en Miami") == "Deportes"


def test_national_politics_priority():
    assert categorize_article("Milei firmó un nuevo decreto") == "Nacionales"


def test_economy_terms_before_generic_scores():
    assert categorize_article("El dólar alcanzó un nuevo récord") == "Economía"


def test_international_priority():
    assert categorize_article("Trump habló sobre aranceles", "Conferencia en Washington") == "Internacionales"


def test_fallback_without_keywords():
    assert categorize_article("Zzz qqq") == DEFAULT_CATEGORY


def test_custom_keyword_table():
    categorize = Categorizer({"Agro": ["cosecha", "soja"]})
    assert categorize("Récord de cosecha de soja en el norte") == "Agro"
