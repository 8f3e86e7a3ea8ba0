import pandas as pd
import pytest
import requests

from student_viz import pipeline
from student_viz.aggregate import build_flow_graph
from student_viz.pipeline import DataLoadError, load_records, run_pipeline

from conftest import SURVEY_CSV


class FakeResponse:
    def __init__(self, content: bytes, status: int = 200):
        self.content = content
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


def test_load_records_types_columns(survey_csv):
    records = load_records(survey_csv)
    assert len(records) == 6
    for col in ["age", "Walc", "G3", "absences"]:
        assert str(records[col].dtype) == "Int64"
    # Blank categorical cells stay as their own (empty) category
    assert records["famsup"].iloc[5] == ""
    # Unused columns are kept
    assert "school" in records.columns


def test_load_records_coerces_junk_to_missing(tmp_path):
    path = tmp_path / "junk.csv"
    path.write_text(
        "age,Walc,G3,absences,schoolsup,famsup,higher\n"
        "x,2,10,3,yes,no,yes\n"
        "17,4,12,,no,no,yes\n",
        encoding="utf-8",
    )
    records = load_records(path)
    assert pd.isna(records["age"].iloc[0])
    assert pd.isna(records["absences"].iloc[1])
    assert records["age"].iloc[1] == 17


def test_load_records_custom_separator(tmp_path):
    path = tmp_path / "semi.csv"
    path.write_text(SURVEY_CSV.replace(",", ";"), encoding="utf-8")
    records = load_records(path, sep=";")
    assert list(records["age"]) == [18, 17, 15, 15, 16, 18]


def test_load_records_missing_file(tmp_path):
    with pytest.raises(DataLoadError) as excinfo:
        load_records(tmp_path / "nope.csv")
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_load_records_missing_columns(tmp_path):
    path = tmp_path / "partial.csv"
    path.write_text("age,Walc\n15,1\n", encoding="utf-8")
    with pytest.raises(DataLoadError) as excinfo:
        load_records(path)
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_load_records_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(DataLoadError):
        load_records(path)


def test_load_records_from_url(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse(SURVEY_CSV.encode("utf-8"))

    monkeypatch.setattr(pipeline.requests, "get", fake_get)
    records = load_records("https://example.org/student-mat.csv")
    assert len(records) == 6
    assert calls == [("https://example.org/student-mat.csv", pipeline.HTTP_TIMEOUT)]


def test_load_records_http_error(monkeypatch):
    monkeypatch.setattr(
        pipeline.requests, "get", lambda url, timeout: FakeResponse(b"", status=404)
    )
    with pytest.raises(DataLoadError) as excinfo:
        load_records("https://example.org/missing.csv")
    assert isinstance(excinfo.value.__cause__, requests.HTTPError)


def test_run_pipeline_payload(survey_csv):
    payload = run_pipeline(source=survey_csv)
    assert set(payload) == {"records", "flow", "age_walc", "absences_walc"}
    assert payload["flow"].total_flow == 2 * len(payload["records"])
    assert list(payload["age_walc"]["age"]) == [15, 16, 17, 18]
    by_age = payload["age_walc"].set_index("age")["mean"]
    assert by_age.loc[18] == pytest.approx(2.5)


def test_main_prints_summary_and_writes_html(survey_csv, tmp_path, capsys):
    out = tmp_path / "out" / "dashboard.html"
    code = pipeline.main(["--source", str(survey_csv), "--html", str(out)])
    assert code == 0
    assert out.exists()
    printed = capsys.readouterr().out
    assert "Records: 6" in printed
    assert "Total flow: 12" in printed


def test_main_reports_load_failure(tmp_path):
    assert pipeline.main(["--source", str(tmp_path / "missing.csv")]) == 1


def test_load_records_keeps_na_like_categories_distinct(tmp_path):
    path = tmp_path / "na_tokens.csv"
    path.write_text(
        "age,Walc,G3,absences,schoolsup,famsup,higher\n"
        "15,1,10,0,NA,no,yes\n"
        "16,2,11,1,null,no,yes\n"
        "17,3,12,2,,no,yes\n"
        "18,4,13,NA,None,no,yes\n",
        encoding="utf-8",
    )
    records = load_records(path)
    assert list(records["schoolsup"]) == ["NA", "null", "", "None"]
    # NA in a numeric column is still missing
    assert pd.isna(records["absences"].iloc[3])

    graph = build_flow_graph(records)
    for value in ["NA", "null", "", "None"]:
        assert f"School Support: {value}" in graph.nodes
    assert "School Support: undefined" not in graph.nodes
    assert graph.total_flow == 2 * len(records)


def test_load_records_short_row_marks_missing(tmp_path):
    path = tmp_path / "short.csv"
    path.write_text(
        "age,Walc,G3,absences,schoolsup,famsup,higher\n"
        "15,1,10,0,yes,no\n",
        encoding="utf-8",
    )
    records = load_records(path)
    assert records["higher"].iloc[0] == "undefined"


@pytest.mark.parametrize("cell", ["inf", "-Infinity", "1e20"])
def test_load_records_out_of_range_numbers(tmp_path, cell):
    path = tmp_path / "huge.csv"
    path.write_text(
        "age,Walc,G3,absences,schoolsup,famsup,higher\n"
        f"15,1,10,{cell},yes,no,yes\n"
        "16,2,11,4,no,no,yes\n",
        encoding="utf-8",
    )
    records = load_records(path)
    absences = records["absences"]
    if cell == "1e20":
        assert absences.iloc[0] == 1e20
    else:
        assert pd.isna(absences.iloc[0])
        assert str(absences.dtype) == "Int64"
    assert absences.iloc[1] == 4


def test_coerce_numeric_overflow_becomes_load_error(tmp_path, monkeypatch):
    path = tmp_path / "boom.csv"
    path.write_text(SURVEY_CSV, encoding="utf-8")

    def explode(series):
        raise OverflowError("cannot convert float infinity to integer")

    monkeypatch.setattr(pipeline, "coerce_numeric", explode)
    with pytest.raises(DataLoadError) as excinfo:
        load_records(path)
    assert isinstance(excinfo.value.__cause__, OverflowError)
