"""
Personality & Health Regression Pipeline
=========================================

Predicts a self-reported health score from Big Five personality traits and
compares four regression models on a common set of cross-validation folds.

Modules:
    - data_loader: SPSS/CSV ingestion, configuration and validation
    - preprocessing: Sentinel recoding, row filtering, trait scoring, imputation
    - folds: Holdout split and the fixed cross-validation fold assignment
    - model: The four regression models (OLS, elastic net, SVR, boosted trees)
    - evaluation: MAE / RMSE / R² metrics and model comparison
"""

__version__ = "1.0.0"
__author__ = "Predictive Analytics Team"
