import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import mlflow
import mlflow.sklearn

from sklearn.compose import ColumnTransformer
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import train_test_split
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder

logger = logging.getLogger(__name__)

LINEAR_REGRESSION = "linear_regression"
RANDOM_FOREST = "random_forest"


class ModelTrainer:
    """Fits a linear regression and a random forest on the same predictors."""

    def __init__(
        self,
        n_estimators: int,
        random_state: int,
        numerical_features: List[str],
        categorical_features: List[str],
    ):
        self.n_estimators = n_estimators
        self.random_state = random_state
        self.numerical_features = numerical_features
        self.categorical_features = categorical_features
        self.features = numerical_features + categorical_features

        self.models = {
            LINEAR_REGRESSION: self._pipeline(LinearRegression()),
            RANDOM_FOREST: self._pipeline(
                RandomForestRegressor(n_estimators=n_estimators, random_state=random_state)
            ),
        }

    def _pipeline(self, regressor) -> Pipeline:
        preprocessor = ColumnTransformer(
            transformers=[
                ("cat", OneHotEncoder(handle_unknown="ignore"), self.categorical_features),
                ("num", "passthrough", self.numerical_features),
            ]
        )
        return Pipeline(steps=[("preprocessor", preprocessor), ("model", regressor)])

    def fit(self, X, y) -> None:
        """Fit both models on every row, e.g. the full feature snapshot."""
        for name, model in self.models.items():
            logger.info(f"Fitting {name} on {len(X)} rows...")
            model.fit(X, y)

    def train(self, X, y, test_size=0.2) -> Tuple[object, object]:
        X_train, X_test, y_train, y_test = train_test_split(
            X, y, test_size=test_size, random_state=self.random_state
        )
        for name, model in self.models.items():
            logger.info(f"Training {name} on {len(X_train)} rows...")
            model.fit(X_train, y_train)
        return X_test, y_test

    def evaluate(self, X_test, y_test, min_r2=None) -> Dict[str, Dict[str, float]]:
        logger.info("Evaluating models...")
        metrics = {}
        for name, model in self.models.items():
            y_pred = model.predict(X_test)
            metrics[name] = {
                "mae": float(mean_absolute_error(y_test, y_pred)),
                "rmse": float(np.sqrt(mean_squared_error(y_test, y_pred))),
                "r2": float(r2_score(y_test, y_pred)),
            }
            logger.info(
                f"{name} -> MAE: {metrics[name]['mae']:.3f} | "
                f"RMSE: {metrics[name]['rmse']:.3f} | R2: {metrics[name]['r2']:.4f}"
            )

        # --- QUALITY GATE ---
        if min_r2 is not None:
            r2 = metrics[RANDOM_FOREST]["r2"]
            if r2 < min_r2:
                raise ValueError(f"Quality Gate Failed! Random forest R2: {r2:.4f} < {min_r2}")
            logger.info("Quality Gate Passed.")

        return metrics

    def log_to_mlflow(self, metrics: Dict[str, Dict[str, float]]) -> None:
        """Log metrics and both fitted models to the active MLflow run."""
        for name, values in metrics.items():
            for metric, value in values.items():
                mlflow.log_metric(f"{name}_{metric}", value)

        mlflow.set_tag("quality_status", "pass")

        for name, model in self.models.items():
            logger.info(f"Logging {name} model to MLflow...")
            mlflow.sklearn.log_model(sk_model=model, name=name)

    def unseen_levels(self, name: str, record: dict) -> Dict[str, object]:
        """Categorical values in record that the named model never saw in training."""
        encoder = self.models[name].named_steps["preprocessor"].named_transformers_["cat"]
        unseen = {}
        for col, known in zip(self.categorical_features, encoder.categories_):
            if record.get(col) not in set(known):
                unseen[col] = record.get(col)
        return unseen

    def predict(self, record: dict) -> Dict[str, Optional[float]]:
        """Estimated delivery minutes from each model; None where a model cannot score the record."""
        row = pd.DataFrame([{feature: record.get(feature) for feature in self.features}])

        missing = [col for col in self.numerical_features if pd.isna(record.get(col))]
        if missing:
            logger.warning(f"Record has no value for {missing}; prediction unavailable")
            return {name: None for name in self.models}

        predictions = {}
        for name, model in self.models.items():
            unseen = self.unseen_levels(name, record)
            if unseen:
                logger.warning(f"{name} has no training data for {unseen}; prediction unavailable")
                predictions[name] = None
                continue
            try:
                predictions[name] = float(model.predict(row)[0])
            except ValueError as e:
                logger.warning(f"{name} could not score {record}: {e}")
                predictions[name] = None
        return predictions
