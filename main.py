#!/usr/bin/env python3
"""
Personality & Health Regression - Main Pipeline
================================================

Orchestrates the analysis from the raw survey export to the model comparison.

Phases:
    1. Prepare - Load, recode sentinels, drop empty respondents, score traits, impute
    2. Train - Holdout split, shared folds, fit OLS / elastic net / SVR / boosted trees
    3. Evaluate - Cross-validation and holdout MAE, RMSE, R² per model

Usage:
    # Run complete pipeline
    python main.py --data data/raw/survey.sav

    # Run specific phase
    python main.py --data data/raw/survey.sav --phase prepare

    # Run with custom config
    python main.py --data data/raw/survey.sav --config config/config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

import pandas as pd

from personality_health.data_loader import load_config, load_data, validate_data, print_data_summary
from personality_health.preprocessing import SurveyPreprocessor, prepare_dataset, print_preprocessing_summary
from personality_health.folds import split_holdout, make_folds
from personality_health.model import train_models, print_model_summary
from personality_health.evaluation import (
    evaluate_models,
    compare_models,
    save_results,
    print_evaluation_report,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        ]
    )


def run_preparation(
    data_path: str,
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 1: Data Preparation.

    Args:
        data_path: Path to the survey file
        config: Configuration dictionary

    Returns:
        Preparation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 1: DATA PREPARATION")
    print("=" * 70)

    prep_config = config.get('preprocessing', {})
    preprocessor = SurveyPreprocessor.from_config(config)

    df = load_data(data_path, columns=preprocessor.columns)
    print_data_summary(df, title="RAW SURVEY COLUMNS")

    is_valid, report = validate_data(df, strict=False)
    if not is_valid:
        print(f"⚠️  Raw survey has quality warnings: {report['issues']}")
        print("    Sentinels and missing answers are handled by preprocessing. Proceeding...")

    result = prepare_dataset(
        df,
        preprocessor=preprocessor,
        imputer=prep_config.get('imputer', 'iterative'),
        random_state=prep_config.get('random_state', 42)
    )
    result['raw_validation'] = report

    print_preprocessing_summary(result)

    return result


def run_training(
    prep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 2: Model Training.

    Splits off the holdout set, builds the shared folds over the training
    rows and fits all four models against them.

    Args:
        prep_result: Preparation result dictionary
        config: Configuration dictionary

    Returns:
        Training result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 2: MODEL TRAINING")
    print("=" * 70)

    prep_config = config.get('preprocessing', {})
    random_state = prep_config.get('random_state', 42)
    preprocessor = prep_result['preprocessor']
    features = preprocessor.feature_columns
    outcome = preprocessor.outcome

    train_df, holdout_df = split_holdout(
        prep_result['dataset'],
        holdout_fraction=prep_config.get('holdout_fraction', 0.2),
        random_state=random_state
    )
    folds = make_folds(
        len(train_df),
        n_splits=prep_config.get('n_folds', 10),
        random_state=random_state
    )

    models = train_models(
        train_df[features],
        train_df[outcome],
        folds,
        config,
        save_dir=config.get('output', {}).get('models_path')
    )

    print_model_summary(models)

    return {
        'models': models,
        'folds': folds,
        'X_train': train_df[features],
        'y_train': train_df[outcome],
        'X_holdout': holdout_df[features],
        'y_holdout': holdout_df[outcome]
    }


def run_evaluation(
    train_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 3: Model Evaluation.

    Args:
        train_result: Training result dictionary
        config: Configuration dictionary

    Returns:
        Evaluation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 3: MODEL EVALUATION")
    print("=" * 70)

    models = train_result['models']

    cv_results = {
        name: model.cross_validate(train_result['X_train'], train_result['y_train'], train_result['folds'])
        for name, model in models.items()
    }
    holdout_results = evaluate_models(models, train_result['X_holdout'], train_result['y_holdout'])
    comparison = compare_models(holdout_results, cv_results)

    files = save_results(
        comparison,
        holdout_results,
        train_result['y_holdout'],
        output_dir=config.get('output', {}).get('reports_path', 'reports/'),
        cv_results=cv_results
    )

    print_evaluation_report(comparison)

    return {
        'comparison': comparison,
        'holdout': holdout_results,
        'cv': cv_results,
        'files': files
    }


def run_full_pipeline(
    data_path: str,
    config_path: str = "config/config.yaml",
    log_level: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute the complete 3-phase pipeline.

    Args:
        data_path: Path to the survey file
        config_path: Path to configuration file
        log_level: Overrides the configured logging level

    Returns:
        Dictionary containing all phase results
    """
    print("\n" + "=" * 70)
    print("PERSONALITY & HEALTH REGRESSION PIPELINE")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    config = load_config(config_path)
    setup_logging(log_level or config.get('logging', {}).get('level', 'INFO'))

    results: Dict[str, Any] = {'config': config}

    results['preparation'] = run_preparation(data_path, config)
    results['training'] = run_training(results['preparation'], config)
    results['evaluation'] = run_evaluation(results['training'], config)

    comparison: pd.DataFrame = results['evaluation']['comparison']
    best = comparison.index[0]

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Modelling rows: {len(results['preparation']['dataset'])}")
    print(f"  • Best model: {best} (holdout RMSE {comparison.loc[best, 'holdout_rmse']:.4f})")
    print(f"  • Metrics: {results['evaluation']['files']['metrics_file']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def run_single_phase(
    phase: str,
    data_path: str,
    config_path: str = "config/config.yaml",
    log_level: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute a single phase of the pipeline (and the phases it depends on).

    Args:
        phase: Phase to run ('prepare', 'train', 'evaluate')
        data_path: Path to the survey file
        config_path: Path to configuration file
        log_level: Overrides the configured logging level

    Returns:
        Phase result dictionary
    """
    config = load_config(config_path)
    setup_logging(log_level or config.get('logging', {}).get('level', 'INFO'))

    if phase == 'prepare':
        return run_preparation(data_path, config)

    elif phase == 'train':
        prep_result = run_preparation(data_path, config)
        return run_training(prep_result, config)

    elif phase == 'evaluate':
        prep_result = run_preparation(data_path, config)
        train_result = run_training(prep_result, config)
        return run_evaluation(train_result, config)

    else:
        raise ValueError(f"Unknown phase: {phase}. Choose from: prepare, train, evaluate")


def main(argv: Optional[list] = None) -> int:
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Personality & Health Regression Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --data data/raw/survey.sav
  python main.py --data data/raw/survey.sav --phase prepare
  python main.py --data data/raw/survey.csv --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        default='data/raw/survey.sav',
        help='Path to the survey file, .sav or .csv (default: data/raw/survey.sav)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['prepare', 'train', 'evaluate', 'all'],
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    if not Path(args.data).exists():
        print(f"Error: Data file not found: {args.data}")
        print("\nPlace the survey export (.sav or .csv) at the specified location.")
        return 1

    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return 1

    log_level = 'DEBUG' if args.verbose else None

    try:
        if args.phase == 'all':
            run_full_pipeline(args.data, args.config, log_level=log_level)
        else:
            run_single_phase(args.phase, args.data, args.config, log_level=log_level)

        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
