"""Pydantic and Pandera validation for ARD observations and posterior tables."""

import pandas as pd
import pandera as pa
from pandera.typing import Series
from pydantic import BaseModel, ValidationError

from ardnet.exceptions import InputInvariantError


observation_schema = pa.DataFrameSchema(
    columns={
        ".+": pa.Column(
            "int64",
            checks=pa.Check.ge(0),
            nullable=False,
            regex=True,
            description="Number of people known in the subgroup",
        ),
    },
    index=pa.Index(unique=True),
    checks=[
        pa.Check(
            lambda df: df.shape[0] >= 1 and df.shape[1] >= 1,
            error="observation matrix needs at least one individual and one subgroup",
        ),
    ],
    unique_column_names=True,
    name="ARDObservations",
)


class RecoveryTable(pa.DataFrameModel):
    """
    Posterior summary of one parameter family against its simulated truth.

    One row per index (respondent or subgroup). Extra columns such as
    ``covered`` are allowed.

    Example
    -------
    >>> tables = summarize_posterior(trace, dataset)
    >>> RecoveryTable.validate(tables.individuals)
    """

    true_value: Series[float] = pa.Field(description="Simulated value")
    mean: Series[float] = pa.Field(description="Posterior mean")
    lower: Series[float] = pa.Field(description="2.5% posterior quantile")
    upper: Series[float] = pa.Field(description="97.5% posterior quantile")

    @pa.dataframe_check
    def interval_ordered(cls, df: pd.DataFrame) -> Series[bool]:
        return df["lower"] <= df["upper"]

    class Config:
        name = "RecoveryTable"
        strict = False
        coerce = True


def validate_observations(y: pd.DataFrame) -> pd.DataFrame:
    """
    Validate an ``individuals x subgroups`` tie-count matrix.

    Raises
    ------
    InputInvariantError
        If counts are negative, non-integer, missing, or the matrix is empty.
    """
    if not isinstance(y, pd.DataFrame):
        raise InputInvariantError(
            f"observations must be a pandas DataFrame, got {type(y).__name__}"
        )
    if y.shape[0] < 1 or y.shape[1] < 1:
        raise InputInvariantError(
            f"observation matrix must be at least 1x1, got {y.shape[0]}x{y.shape[1]}"
        )
    try:
        return observation_schema.validate(y)
    except (pa.errors.SchemaError, pa.errors.SchemaErrors) as e:
        raise InputInvariantError(f"invalid observation matrix: {e}") from e


class ValidatedSettings(BaseModel):
    """
    Pydantic base for configuration objects.

    Constraint violations surface as :class:`InputInvariantError` instead of
    pydantic's ``ValidationError``, so callers only handle ardnet errors.
    """

    def __init__(self, **data) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise InputInvariantError(str(e)) from e
