import datetime
import re

import numpy as np
import pandas as pd

DATE_FORMAT = "%Y-%m-%d"


def extract_date(x):
    # Extract the date string in the format YYYYMMDD
    found = re.search(r"\d{8}", x)
    if found is None:
        raise ValueError(f"No YYYYMMDD date in '{x}'")
    # Convert the extracted string to a date object
    return datetime.datetime.strptime(found.group(), "%Y%m%d")


def layer_ids(values):
    """
    Method to turn layer coordinate values into layer ids.

    Args:
        values: Coordinate values of the layer dimension of a raster.

    Returns:
        list: Dates (numpy, pandas or cftime) as YYYY-MM-DD strings, anything
        else as its string form.
    """
    ids = []
    for value in values:
        if isinstance(value, np.datetime64):
            value = pd.Timestamp(value)
        if hasattr(value, "strftime"):
            ids.append(value.strftime(DATE_FORMAT))
        else:
            ids.append(str(value))
    return ids
