import datetime

import numpy as np
import pandas as pd
import pytest

from src.utils.date_utils import extract_date, layer_ids


def test_extract_date_from_filename():
    assert extract_date("tas_20230815_eur11.tif") == datetime.datetime(
        2023, 8, 15
    )


def test_extract_date_without_date():
    with pytest.raises(ValueError):
        extract_date("tas_daily.tif")


def test_layer_ids_from_datetimes():
    times = pd.date_range("2023-08-01", periods=2).values
    assert layer_ids(times) == ["2023-08-01", "2023-08-02"]


def test_layer_ids_from_other_values():
    assert layer_ids(np.array([1, 2])) == ["1", "2"]
