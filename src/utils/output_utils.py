import logging
import os

import pandas as pd
from slugify import slugify

logger = logging.getLogger(__name__)


def output_filename(name, extension):
    return f"{slugify(name, separator='_')}.{extension}"


def write_output_stats(df, name, folder):
    """
    Write a DataFrame to a Parquet file in the output folder.

    Parameters
    ----------
    df : pandas.DataFrame
        The DataFrame containing the data to be saved. Geometry columns
        should be dropped first.
    name : str
        Dataset name, slugified into the file name.
    folder : str
        Folder to write to. Created if missing.

    Returns
    -------
    str
        Path of the written file.
    """
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, output_filename(name, "parquet"))
    df.to_parquet(path, engine="pyarrow", index=False)
    logger.info(f"Wrote {len(df)} rows to {path}")
    return path


def write_excel_report(sheets, name, folder):
    """Write each (sheet name -> DataFrame) item as one sheet of a workbook."""
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, output_filename(name, "xlsx"))
    with pd.ExcelWriter(path, engine="openpyxl") as excel_file:
        for sheet_name, df in sheets.items():
            df.to_excel(excel_file, sheet_name=sheet_name, index=False)
    logger.info(f"Wrote {len(sheets)} sheets to {path}")
    return path
