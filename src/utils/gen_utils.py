def check_columns(df, columns):
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise KeyError(
            f"Missing required columns {missing}. Available={list(df.columns)}"
        )
