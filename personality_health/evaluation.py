"""
Model Evaluation Module
=======================

Error metrics and side-by-side comparison of the fitted models.

Features:
    - MAE, RMSE, R² computed directly from residuals
    - Cross-validation summaries (mean / std across folds)
    - Holdout evaluation of every model
    - Comparison table and JSON / CSV export
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, List, Mapping, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

METRIC_NAMES = ('mae', 'rmse', 'r2')


class UndefinedMetricError(ValueError):
    """Raised when R² cannot be computed because the true values have no variance."""


def _as_vector(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise ValueError(f"{name} is empty")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name} contains missing or non-finite values")
    return arr


def error_metrics(y_true, y_pred) -> Dict[str, float]:
    """
    MAE and RMSE only. Defined for any non-empty pair of equal-length vectors.

    Raises:
        ValueError: If the inputs are empty, non-finite or of unequal length
    """
    y_true = _as_vector(y_true, "y_true")
    y_pred = _as_vector(y_pred, "y_pred")

    if y_true.shape != y_pred.shape:
        raise ValueError(
            f"y_true and y_pred must have the same length, got {len(y_true)} and {len(y_pred)}"
        )

    residuals = y_true - y_pred
    return {
        'mae': float(np.mean(np.abs(residuals))),
        'rmse': float(np.sqrt(np.mean(residuals ** 2)))
    }


def calculate_metrics(y_true, y_pred) -> Dict[str, float]:
    """
    Calculate MAE, RMSE and R² for one vector of predictions.

    R² is 1 - SSE/SST with SST = (n - 1) * sample variance of ``y_true``.

    Args:
        y_true: Observed outcome values
        y_pred: Predicted values, same length as ``y_true``

    Returns:
        Dictionary with 'mae', 'rmse' and 'r2'

    Raises:
        ValueError: If the inputs are empty, non-finite or of unequal length
        UndefinedMetricError: If all true values are identical
    """
    metrics = error_metrics(y_true, y_pred)

    y_true = _as_vector(y_true, "y_true")
    y_pred = _as_vector(y_pred, "y_pred")
    n = len(y_true)

    # np.var can round a constant float vector to a tiny positive SST
    if n < 2 or np.all(y_true == y_true[0]):
        raise UndefinedMetricError(
            f"R² is undefined: all {n} true values are identical ({y_true[0]})"
        )

    sse = np.sum((y_true - y_pred) ** 2)
    sst = (n - 1) * np.var(y_true, ddof=1)
    metrics['r2'] = float(1 - sse / sst)

    return metrics


def summarize_cv(fold_metrics: List[Dict[str, Optional[float]]]) -> Dict[str, Any]:
    """
    Mean and standard deviation of each metric across folds.

    Folds whose R² is None (constant outcome in that fold) are left out of
    the R² summary only. If no fold has an R², its mean and std are None.

    Returns:
        Dictionary like {'mae_mean': ..., 'mae_std': ..., 'rmse_mean': ...}
    """
    if not fold_metrics:
        raise ValueError("No fold metrics to summarize")

    frame = pd.DataFrame(fold_metrics)
    summary: Dict[str, Any] = {}
    for name in METRIC_NAMES:
        values = pd.to_numeric(frame[name], errors='coerce').dropna()
        if values.empty:
            summary[f'{name}_mean'] = None
            summary[f'{name}_std'] = None
            continue
        summary[f'{name}_mean'] = float(values.mean())
        summary[f'{name}_std'] = float(values.std(ddof=1)) if len(values) > 1 else 0.0
    summary['n_folds'] = len(frame)
    summary['n_undefined_r2'] = int(frame['r2'].isna().sum())
    return summary


def evaluate_models(
    models: Mapping[str, Any],
    X_holdout: pd.DataFrame,
    y_holdout: pd.Series
) -> Dict[str, Dict[str, Any]]:
    """
    Score every fitted model on the holdout set.

    Args:
        models: {name: fitted model with a predict method}
        X_holdout: Holdout features
        y_holdout: Holdout outcome

    Returns:
        {name: {'metrics': {...}, 'predictions': ndarray}}

    Raises:
        UndefinedMetricError: If the holdout outcome has zero variance
    """
    results = {}
    for name, model in models.items():
        predictions = np.asarray(model.predict(X_holdout), dtype=float)
        metrics = calculate_metrics(y_holdout, predictions)
        results[name] = {
            'metrics': metrics,
            'predictions': predictions
        }
        logger.info(
            f"Holdout {name}: MAE={metrics['mae']:.4f} RMSE={metrics['rmse']:.4f} R²={metrics['r2']:.4f}"
        )
    return results


def compare_models(
    holdout_results: Mapping[str, Dict[str, Any]],
    cv_results: Optional[Mapping[str, List[Dict[str, float]]]] = None
) -> pd.DataFrame:
    """
    Build the comparison table, one row per model, ordered by holdout RMSE.

    Args:
        holdout_results: Output of evaluate_models
        cv_results: {name: per-fold metric dicts}

    Returns:
        DataFrame indexed by model name
    """
    rows = []
    for name, result in holdout_results.items():
        row = {'model': name}
        row.update({f'holdout_{k}': v for k, v in result['metrics'].items()})
        if cv_results and name in cv_results:
            row.update({f'cv_{k}': v for k, v in summarize_cv(cv_results[name]).items()})
        rows.append(row)

    table = pd.DataFrame(rows).set_index('model')
    return table.sort_values('holdout_rmse')


def save_results(
    comparison: pd.DataFrame,
    holdout_results: Mapping[str, Dict[str, Any]],
    y_holdout: pd.Series,
    output_dir: str = "reports/",
    cv_results: Optional[Mapping[str, List[Dict[str, float]]]] = None
) -> Dict[str, str]:
    """
    Write metrics JSON, comparison CSV and holdout predictions CSV.

    Returns:
        Dictionary of written file paths
    """
    metrics_dir = Path(output_dir) / "metrics"
    metrics_dir.mkdir(parents=True, exist_ok=True)

    metrics = {
        name: {
            'holdout': result['metrics'],
            'cv_folds': list(cv_results.get(name, [])) if cv_results else []
        }
        for name, result in holdout_results.items()
    }
    metrics_file = metrics_dir / "evaluation_metrics.json"
    with open(metrics_file, 'w') as f:
        json.dump(metrics, f, indent=2)
    logger.info(f"Metrics saved to {metrics_file}")

    comparison_file = metrics_dir / "model_comparison.csv"
    comparison.to_csv(comparison_file)
    logger.info(f"Comparison table saved to {comparison_file}")

    predictions = pd.DataFrame({'observed': np.asarray(y_holdout, dtype=float)}, index=y_holdout.index)
    for name, result in holdout_results.items():
        predictions[name] = result['predictions']
    predictions_file = metrics_dir / "holdout_predictions.csv"
    predictions.to_csv(predictions_file)
    logger.info(f"Holdout predictions saved to {predictions_file}")

    return {
        'metrics_file': str(metrics_file),
        'comparison_file': str(comparison_file),
        'predictions_file': str(predictions_file)
    }


def print_evaluation_report(comparison: pd.DataFrame) -> None:
    """
    Print a formatted evaluation report to console.

    Args:
        comparison: Table from compare_models
    """
    print("\n" + "=" * 70)
    print("MODEL COMPARISON (HOLDOUT)")
    print("=" * 70)
    print(f"{'Model':<20} {'MAE':<12} {'RMSE':<12} {'R²':<12} {'CV RMSE':<12}")
    print("-" * 70)

    for name, row in comparison.iterrows():
        cv_rmse = row.get('cv_rmse_mean', np.nan)
        print(f"{name:<20} {row['holdout_mae']:<12.4f} {row['holdout_rmse']:<12.4f} "
              f"{row['holdout_r2']:<12.4f} {cv_rmse:<12.4f}")

    print("-" * 70)
    best = comparison.index[0]
    print(f"\nLowest holdout RMSE: {best} ({comparison.loc[best, 'holdout_rmse']:.4f})")
    print("=" * 70 + "\n")
