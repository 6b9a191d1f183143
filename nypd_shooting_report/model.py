"""Logistic regression of the statistical murder flag."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf

from .exceptions import DataQualityError

logger = logging.getLogger(__name__)

DEFAULT_FORMULA = "murder ~ C(victim_age_group) + C(victim_sex) + C(borough)"


@dataclass
class ModelSummary:
    formula: str
    observations: int
    aic: float
    coefficients: pd.DataFrame

    def significant_terms(self, alpha: float = 0.05) -> pd.DataFrame:
        return self.coefficients[self.coefficients["p_value"] < alpha]


def fit_murder_model(df: pd.DataFrame, *, formula: str = DEFAULT_FORMULA) -> ModelSummary:
    """Fit a binomial GLM of whether a shooting was classified as a murder."""
    if df.empty:
        raise DataQualityError("Cannot fit the murder model on an empty incident table")

    data = df.assign(murder=df["is_statistical_murder"].astype(int))
    if data["murder"].nunique() < 2:
        raise DataQualityError("Murder flag has a single class; the model is not identifiable")

    result = smf.glm(formula, data=data, family=sm.families.Binomial()).fit()

    coefficients = pd.DataFrame(
        {
            "term": result.params.index,
            "coefficient": result.params.values,
            "std_error": result.bse.values,
            "odds_ratio": np.exp(result.params.values),
            "p_value": result.pvalues.values,
        }
    )
    summary = ModelSummary(
        formula=formula,
        observations=int(result.nobs),
        aic=float(result.aic),
        coefficients=coefficients.reset_index(drop=True),
    )
    logger.info("Fitted murder model on %s incidents (AIC %.1f)", summary.observations, summary.aic)
    return summary


__all__ = ["DEFAULT_FORMULA", "ModelSummary", "fit_murder_model"]
