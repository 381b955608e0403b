import re

import pandas as pd
from pandas import json_normalize

# Commas, semicolons and any run of whitespace (including newlines)
_REQUESTER_SEPARATORS = re.compile(r"[,;\s]+")

RESULT_COLUMNS = ["sourceUid", "targetUid", "status", "message"]


def positive_int(value):
    """Returns value when it is a positive int (bools excluded), else None."""
    return value if isinstance(value, int) and not isinstance(value, bool) and value > 0 else None


def parse_requesters(raw):
    """
    Splits a free-form list of logins/emails into an ordered, de-duplicated list.

    Entries may be separated by commas, semicolons, spaces or newlines. Duplicates
    are detected case-insensitively; the first spelling seen is the one kept.

    Parameters:
        raw (str): The raw requester string, e.g. "alice@example.com; bob".

    Returns:
        list: The requesters in first-seen order. Empty for None or blank input.

    Example:
        >>> parse_requesters("a, A; b\\nC")
        ['a', 'b', 'C']
    """
    if not raw:
        return []

    seen = set()
    requesters = []
    for token in _REQUESTER_SEPARATORS.split(raw):
        token = token.strip()
        if not token:
            continue
        key = token.lower()
        if key in seen:
            continue
        seen.add(key)
        requesters.append(token)
    return requesters


def convert_to_dataframe(data, logger=None):
    """
    Converts migration results (a list of dicts or a single dict) to a pandas DataFrame.

    Nested values such as per-step diagnostics are flattened with json_normalize.

    Parameters:
        data: dict or list of dicts
        logger: logging.Logger, optional logger for capturing debug/error output

    Returns:
        DataFrame: The flattened data, or None if conversion fails.
    """
    try:
        if isinstance(data, dict):
            df = json_normalize(data)
        elif isinstance(data, list):
            if not all(isinstance(item, dict) for item in data):
                raise ValueError("Expected a list of dictionaries.")
            if not data:
                return pd.DataFrame(columns=RESULT_COLUMNS)
            df = json_normalize(data)
        else:
            raise ValueError("Data must be a dictionary or a list of dictionaries.")

        # Keep the result columns first and in a stable order
        leading = [column for column in RESULT_COLUMNS if column in df.columns]
        trailing = [column for column in df.columns if column not in RESULT_COLUMNS]
        return df[leading + trailing]

    except ValueError as e:
        if logger:
            logger.error(f"Data conversion failed: {e}")
        return None


def export_to_csv(data, file_name="migration_results.csv", logger=None):
    """
    Converts data to a DataFrame and exports it to a CSV file.

    Parameters:
        data: dict or list of dicts
        file_name (str): Name of the CSV file to export
        logger: logging.Logger, optional logger for capturing debug/error output

    Returns:
        bool: True if the file was written.
    """
    df = convert_to_dataframe(data, logger=logger)
    if df is None:
        if logger:
            logger.error("Failed to export data due to invalid input format.")
        return False

    df.to_csv(file_name, index=False)
    if logger:
        logger.info(f"Data successfully exported to {file_name}")
    return True
