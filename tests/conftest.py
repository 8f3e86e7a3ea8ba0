import pandas as pd
import pytest

from student_viz import data_manager

SURVEY_CSV = """school,sex,age,famsup,schoolsup,higher,absences,Walc,G3
GP,F,18,no,yes,yes,6,1,6
GP,F,17,yes,no,yes,4,1,6
GP,F,15,no,yes,yes,10,3,10
GP,F,15,yes,no,yes,2,1,15
MS,M,16,yes,no,no,4,2,10
MS,M,18,,no,yes,0,4,11
"""


@pytest.fixture
def survey_csv(tmp_path):
    path = tmp_path / "student-mat.csv"
    path.write_text(SURVEY_CSV, encoding="utf-8")
    return path


@pytest.fixture
def records():
    return pd.DataFrame(
        {
            "age": [18, 17, 15, 15, 16, 18],
            "Walc": [1, 1, 3, 1, 2, 4],
            "G3": [6, 6, 10, 15, 10, 11],
            "absences": [6, 4, 10, 2, 4, 0],
            "schoolsup": ["yes", "no", "yes", "no", "no", "no"],
            "famsup": ["no", "yes", "no", "yes", "yes", "undefined"],
            "higher": ["yes", "yes", "yes", "yes", "no", "yes"],
        }
    )


@pytest.fixture(autouse=True)
def _clear_payload_cache():
    data_manager._compute_pipeline_payload.cache_clear()
    yield
    data_manager._compute_pipeline_payload.cache_clear()
