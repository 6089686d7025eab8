import pytest

from bankrecon.models import Column, InvalidBoundaryError, TextItem
from bankrecon.positional import REFERENCE_PAGE_WIDTH, ColumnCalibrationEngine, templates_for
from bankrecon.positional.templates import COLUMN_TEMPLATES, is_amount_or_empty, is_date


@pytest.fixture
def engine():
    return ColumnCalibrationEngine()


def test_templates_cover_every_bank():
    assert set(COLUMN_TEMPLATES) == {"BDK", "ATB", "BICIS", "ORA", "SGBS", "BIS"}
    for templates in COLUMN_TEMPLATES.values():
        zones = [t.x_zone for t in templates]
        assert all(start < end <= REFERENCE_PAGE_WIDTH for start, end in zones)
        assert zones == sorted(zones)


def test_bdk_template_names():
    assert [t.name for t in templates_for("bdk")] == [
        "Date", "CH.NO", "Description", "Vendor Provider", "Client", "TR No/FACT.No", "Amount"]


def test_expected_bounds_scale_with_page_width(engine):
    date_column = templates_for("BDK")[0]
    assert engine.expected_bounds(date_column, 850) == (45, 115)
    assert engine.expected_bounds(date_column, 1700) == (90, 230)


def test_boundary_score_is_monotonic(engine):
    expected = (100.0, 200.0)
    scores = [engine.boundary_score((100.0 + d, 200.0 + d), expected, 850.0) for d in range(0, 120, 5)]
    assert scores[0] == 100.0
    assert all(a >= b for a, b in zip(scores, scores[1:]))
    assert scores[-1] == 0.0


def test_boundary_score_formula(engine):
    # 17 units of total deviation on an 850 page is 2% of the width, i.e. 20 points
    assert engine.boundary_score((110.0, 207.0), (100.0, 200.0), 850.0) == pytest.approx(80.0)
    with pytest.raises(InvalidBoundaryError):
        engine.boundary_score((0.0, 1.0), (0.0, 1.0), 0)


def test_content_score(engine):
    date_column = templates_for("BDK")[0]
    assert engine.content_score(date_column, ["18/06/2025", "OPENING"]) == (50.0, 1)
    assert engine.content_score(date_column, []) == (100.0, 0)


def test_calibrate_flags_zero_population(engine):
    templates = templates_for("SGBS")
    columns = [Column(t.x_zone[0], t.x_zone[1], i) for i, t in enumerate(templates)]
    columns[0].items.append(TextItem("20/06/2025", 50.0, 10.0))
    columns[4].items.append(TextItem("oops", 700.0, 10.0))

    report = engine.calibrate(columns, templates, 850.0, "SGBS")
    assert report.calibration_score == 100.0
    assert report.columns[0].content_score == 100.0
    assert report.columns[4].content_score == 0.0
    assert report.content_score == 80.0
    assert [c.zero_population for c in report.columns] == [False, True, True, True, False]
    assert sum("zero-population" in issue for issue in report.issues) == 3
    assert report.to_dict()["columns"][1]["zero_population"] is True


def test_calibrate_reports_count_mismatch(engine):
    templates = templates_for("BIS")
    columns = [Column(0.0, 425.0, 0), Column(425.0, 850.0, 1)]
    report = engine.calibrate(columns, templates, 850.0)
    assert report.issues[0].startswith("column count mismatch")
    assert len(report.columns) == 2


def test_validators():
    assert is_date(" 01/02/2025 ")
    assert not is_date("2025-02-01")
    assert is_amount_or_empty("1 250 000")
    assert is_amount_or_empty("")
    assert not is_amount_or_empty("12ab")
