"""
Data Loader Module
==================

Handles survey file ingestion, column selection and basic data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - load_data: Load an SPSS (.sav) or CSV survey export
    - select_columns: Keep the configured column subset
    - validate_data: Check data quality constraints
    - get_data_summary: Generate basic statistics
    - print_data_summary: Console report built from get_data_summary
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import numpy as np
import yaml

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.sav', '.csv')


class DataLoadError(IOError):
    """Raised when a survey file exists but cannot be read."""


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def load_data(
    file_path: str,
    columns: Optional[List[str]] = None
) -> pd.DataFrame:
    """
    Load a survey export, keeping raw numeric response codes.

    SPSS files are read without applying value labels so that sentinel
    codes survive as numbers and can be recoded later.

    Args:
        file_path: Path to the .sav or .csv file
        columns: Columns to read (optional, defaults to all)

    Returns:
        DataFrame containing the loaded data

    Raises:
        FileNotFoundError: If data file doesn't exist
        DataLoadError: If the file type is unsupported or reading fails
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise DataLoadError(
            f"Unsupported data file type '{suffix}'. Expected one of {SUPPORTED_EXTENSIONS}"
        )

    try:
        if suffix == '.sav':
            df = pd.read_spss(file_path, usecols=columns, convert_categoricals=False)
        else:
            df = pd.read_csv(file_path, usecols=columns)
    except ImportError:
        raise
    except Exception as e:
        # pyreadstat raises its own ReadstatError for corrupt .sav files
        raise DataLoadError(f"Could not read data file {file_path}: {e}") from e

    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    return df


def select_columns(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """
    Keep only the given columns, in the given order.

    Raises:
        KeyError: If any requested column is absent
    """
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise KeyError(f"Columns not found in dataset: {missing}")

    return df[list(columns)].copy()


def validate_data(df: pd.DataFrame, strict: bool = True) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate data quality constraints for survey analysis.

    Checks:
        - All columns are numerical
        - Missing values per column
        - Duplicate rows

    Args:
        df: DataFrame to validate
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "column_names": list(df.columns),
        "issues": []
    }

    # Check 1: All columns should be numerical
    non_numeric_cols = df.select_dtypes(exclude=[np.number]).columns.tolist()
    if non_numeric_cols:
        issue = f"Non-numeric columns found: {non_numeric_cols}"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 2: Missing values
    missing_counts = df.isnull().sum()
    total_missing = missing_counts.sum()
    if total_missing > 0:
        missing_pct = (total_missing / (df.shape[0] * df.shape[1])) * 100
        issue = f"Missing values: {total_missing} ({missing_pct:.2f}%)"
        report["issues"].append(issue)
        report["missing_by_column"] = missing_counts[missing_counts > 0].to_dict()
        logger.warning(issue)

    # Check 3: Duplicate rows
    duplicates = df.duplicated().sum()
    if duplicates > 0:
        issue = f"Duplicate rows found: {duplicates}"
        report["issues"].append(issue)
        logger.warning(issue)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise ValueError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def get_data_summary(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Generate summary statistics for the dataset.

    Args:
        df: DataFrame to summarize

    Returns:
        Dictionary with shape, dtypes, and per-column counts and statistics
    """
    summary = {
        "shape": df.shape,
        "columns": list(df.columns),
        "dtypes": df.dtypes.astype(str).to_dict(),
        "statistics": {}
    }

    for col in df.select_dtypes(include=[np.number]).columns:
        summary["statistics"][col] = {
            "count": int(df[col].count()),
            "missing": int(df[col].isna().sum()),
            "mean": float(df[col].mean()),
            "std": float(df[col].std()),
            "min": float(df[col].min()),
            "median": float(df[col].median()),
            "max": float(df[col].max())
        }

    return summary


def print_data_summary(df: pd.DataFrame, title: str = "DATASET SUMMARY") -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
        title: Banner title
    """
    summary = get_data_summary(df)
    n_rows, n_cols = summary["shape"]

    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    print(f"Shape: {n_rows} rows × {n_cols} columns")
    print("\nColumn Information:")
    print("-" * 40)

    for col in summary["columns"]:
        missing = int(df[col].isna().sum())
        missing_pct = missing / n_rows * 100 if n_rows else 0.0
        print(f"  {col}: {summary['dtypes'][col]} | {n_rows - missing} non-null ({missing_pct:.1f}% missing)")

    if summary["statistics"]:
        print("\nBasic Statistics:")
        print("-" * 40)
        print(pd.DataFrame(summary["statistics"]).T.round(4).to_string())
    print("=" * 60 + "\n")
