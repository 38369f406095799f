"""
Model Training Module
=====================

The four regression models compared by the pipeline:

    - ols: LinearRegression
    - elastic_net: StandardScaler + ElasticNet
    - svr: StandardScaler + SVR (RBF kernel)
    - gbm: HistGradientBoostingRegressor

Features:
    - Hyperparameter grids via config file, tuned with GridSearchCV
    - Every model tuned and cross-validated on one shared fold assignment
    - Model persistence (save/load)
    - Training progress logging
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from datetime import datetime

import numpy as np
import pandas as pd
import joblib
from sklearn.base import clone
from sklearn.ensemble import HistGradientBoostingRegressor
from sklearn.linear_model import ElasticNet, LinearRegression
from sklearn.model_selection import GridSearchCV
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVR

from .evaluation import UndefinedMetricError, calculate_metrics, error_metrics
from .folds import FoldAssignment

logger = logging.getLogger(__name__)

MODEL_NAMES = ('ols', 'elastic_net', 'svr', 'gbm')

DEFAULT_PARAM_GRIDS: Dict[str, Dict[str, List[Any]]] = {
    'ols': {},
    'elastic_net': {
        'alpha': [0.001, 0.01, 0.1, 1.0],
        'l1_ratio': [0.1, 0.5, 0.9]
    },
    'svr': {
        'C': [0.1, 1.0, 10.0],
        'gamma': ['scale', 0.1],
        'epsilon': [0.1]
    },
    'gbm': {
        'max_iter': [100, 200],
        'learning_rate': [0.05, 0.1],
        'max_depth': [3, 5]
    }
}

SCORING = 'neg_root_mean_squared_error'


def build_estimator(name: str, random_state: int = 42) -> Pipeline:
    """
    Create the untuned scikit-learn pipeline for a model name.

    Raises:
        ValueError: On an unknown model name
    """
    if name == 'ols':
        steps = [('model', LinearRegression())]
    elif name == 'elastic_net':
        steps = [
            ('scaler', StandardScaler()),
            ('model', ElasticNet(random_state=random_state, max_iter=10000))
        ]
    elif name == 'svr':
        steps = [
            ('scaler', StandardScaler()),
            ('model', SVR(kernel='rbf'))
        ]
    elif name == 'gbm':
        steps = [('model', HistGradientBoostingRegressor(
            random_state=random_state,
            early_stopping=False
        ))]
    else:
        raise ValueError(f"Unknown model: {name}. Choose from: {', '.join(MODEL_NAMES)}")

    return Pipeline(steps)


class RegressionModel:
    """
    One tunable regression model.

    Tuning and cross-validation both use the FoldAssignment passed in, so
    models fitted on the same assignment are directly comparable.
    """

    def __init__(
        self,
        name: str,
        param_grid: Optional[Dict[str, List[Any]]] = None,
        random_state: int = 42
    ):
        """
        Initialize the model.

        Args:
            name: One of MODEL_NAMES
            param_grid: Hyperparameter grid keyed by estimator parameter name
            random_state: Random seed for reproducibility
        """
        self.name = name
        self.param_grid = dict(param_grid) if param_grid is not None else dict(DEFAULT_PARAM_GRIDS.get(name, {}))
        self.random_state = random_state

        self.estimator: Pipeline = build_estimator(name, random_state)
        self.best_params_: Dict[str, Any] = {}
        self.feature_names_: Optional[List[str]] = None
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    def _search_grid(self) -> Dict[str, List[Any]]:
        return {f'model__{key}': list(values) for key, values in self.param_grid.items()}

    def fit(
        self,
        X: pd.DataFrame,
        y: pd.Series,
        folds: FoldAssignment
    ) -> 'RegressionModel':
        """
        Tune on the shared folds and refit the best setting on all of X.

        Args:
            X: Training features
            y: Training outcome
            folds: Fold assignment over the rows of X

        Returns:
            Self for method chaining
        """
        if folds.n_rows != len(X):
            raise ValueError(
                f"Fold assignment covers {folds.n_rows} rows but X has {len(X)}"
            )

        start_time = datetime.now()
        logger.info(f"Training {self.name} on X={X.shape} with {len(folds)} folds")

        X = pd.DataFrame(X)
        self.feature_names_ = [str(col) for col in X.columns]
        grid = self._search_grid()

        if grid:
            search = GridSearchCV(
                clone(self.estimator),
                grid,
                cv=folds.as_list(),
                scoring=SCORING,
                refit=True
            )
            search.fit(X, y)
            self.estimator = search.best_estimator_
            self.best_params_ = {
                key.replace('model__', ''): value for key, value in search.best_params_.items()
            }
            best_cv_rmse = float(-search.best_score_)
        else:
            self.estimator = clone(self.estimator).fit(X, y)
            best_cv_rmse = None

        training_duration = (datetime.now() - start_time).total_seconds()
        self.training_info = {
            'training_duration_seconds': training_duration,
            'n_samples': int(len(X)),
            'n_features': int(X.shape[1]),
            'n_folds': len(folds),
            'best_params': self.best_params_,
            'best_cv_rmse': best_cv_rmse,
            'trained_at': datetime.now().isoformat()
        }
        self._is_fitted = True

        logger.info(f"{self.name} trained in {training_duration:.2f}s, best params: {self.best_params_}")
        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Make predictions using the trained model.

        Args:
            X: Feature frame with the training columns

        Returns:
            Predictions array of shape (n_samples,)
        """
        if not self._is_fitted:
            raise ValueError("Model must be trained before prediction. Call fit() first.")

        X = pd.DataFrame(X)
        if X.shape[1] != self.training_info['n_features']:
            raise ValueError(
                f"Expected {self.training_info['n_features']} features, but got {X.shape[1]}"
            )

        columns = [str(col) for col in X.columns]
        if self.feature_names_ is not None and columns != self.feature_names_:
            raise ValueError(
                f"Feature columns {columns} do not match the training columns {self.feature_names_}"
            )

        return self.estimator.predict(X)

    def cross_validate(
        self,
        X: pd.DataFrame,
        y: pd.Series,
        folds: FoldAssignment
    ) -> List[Dict[str, float]]:
        """
        Metric triple on every held-out fold, using the tuned settings.

        A fold whose held-out outcome is constant keeps its MAE and RMSE and
        reports ``r2`` as None.

        Returns:
            One {'mae', 'rmse', 'r2'} dict per fold, in fold order
        """
        if not self._is_fitted:
            raise ValueError("Model must be trained before cross-validation. Call fit() first.")

        X = pd.DataFrame(X)
        y_arr = np.asarray(y, dtype=float)

        fold_metrics = []
        for fold, (train_idx, test_idx) in enumerate(folds.splits()):
            estimator = clone(self.estimator)
            estimator.fit(X.iloc[train_idx], y_arr[train_idx])
            predictions = estimator.predict(X.iloc[test_idx])
            try:
                metrics = calculate_metrics(y_arr[test_idx], predictions)
            except UndefinedMetricError as e:
                logger.warning(f"{self.name} fold {fold}: {e}; recording R² as None")
                metrics = error_metrics(y_arr[test_idx], predictions)
                metrics['r2'] = None
            fold_metrics.append(metrics)

        return fold_metrics

    def save(self, filepath: str) -> None:
        """
        Save the trained model to disk.

        Args:
            filepath: Path to save the model
        """
        if not self._is_fitted:
            raise ValueError("Cannot save untrained model.")

        state = {
            'name': self.name,
            'estimator': self.estimator,
            'param_grid': self.param_grid,
            'random_state': self.random_state,
            'best_params_': self.best_params_,
            'feature_names_': self.feature_names_,
            'training_info': self.training_info,
            '_is_fitted': self._is_fitted
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Model saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'RegressionModel':
        """
        Load a trained model from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded RegressionModel instance
        """
        state = joblib.load(filepath)

        model = cls(state['name'], param_grid=state['param_grid'], random_state=state['random_state'])
        model.estimator = state['estimator']
        model.best_params_ = state['best_params_']
        model.feature_names_ = state['feature_names_']
        model.training_info = state['training_info']
        model._is_fitted = state['_is_fitted']

        logger.info(f"Model loaded from {filepath}")
        return model


def train_models(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    folds: FoldAssignment,
    config: Dict[str, Any],
    save_dir: Optional[str] = None
) -> Dict[str, RegressionModel]:
    """
    Train every configured model on the same fold assignment.

    Args:
        X_train: Training features
        y_train: Training outcome
        folds: Shared fold assignment
        config: Configuration dictionary ('models' section holds the grids)
        save_dir: Directory to save trained models (optional)

    Returns:
        {name: trained RegressionModel}
    """
    models_config = config.get('models', {})
    names = models_config.get('enabled', list(MODEL_NAMES))
    grids = models_config.get('param_grids', {})
    random_state = config.get('preprocessing', {}).get('random_state', 42)

    logger.info("=" * 60)
    logger.info("STARTING MODEL TRAINING")
    logger.info("=" * 60)

    models = {}
    for name in names:
        model = RegressionModel(
            name,
            param_grid=grids.get(name, DEFAULT_PARAM_GRIDS.get(name, {})),
            random_state=random_state
        )
        model.fit(X_train, y_train, folds)
        if save_dir:
            model.save(str(Path(save_dir) / f"{name}.joblib"))
        models[name] = model

    logger.info("=" * 60)
    logger.info(f"MODEL TRAINING COMPLETE: {', '.join(models)}")
    logger.info("=" * 60)

    return models


def print_model_summary(models: Dict[str, RegressionModel]) -> None:
    """
    Print a summary of the trained models.

    Args:
        models: Trained models keyed by name
    """
    print("\n" + "=" * 50)
    print("MODEL SUMMARY")
    print("=" * 50)
    for name, model in models.items():
        info = model.training_info
        print(f"{name}:")
        print(f"  - Estimator: {' -> '.join(type(step).__name__ for _, step in model.estimator.steps)}")
        print(f"  - Best params: {model.best_params_ or 'n/a'}")
        if info.get('best_cv_rmse') is not None:
            print(f"  - Tuning CV RMSE: {info['best_cv_rmse']:.4f}")
        print(f"  - Duration: {info.get('training_duration_seconds', 0.0):.2f}s")
    print("=" * 50 + "\n")
