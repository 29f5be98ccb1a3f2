import logging
import re
import pandas as pd
import great_expectations as gx
import great_expectations.expectations as gxe
from great_expectations.core.expectation_suite import ExpectationSuite
import delivery_analytics.data_contract as dc

logger = logging.getLogger(__name__)

class DataValidator:
    """Asserts the cleaned table honours the data contract before it is persisted."""

    def __init__(self, df: pd.DataFrame):
        self.df = df
        # Ephemeral Context: In-memory configuration suitable for automated pipelines.
        self.context = gx.get_context(mode="ephemeral")
        self.datasource_name = "pandas_datasource"
        self.asset_name = "delivery_dataframe"
        self.suite_name = "delivery_quality_suite"
        self.validation_results = None

    def build_suite(self) -> ExpectationSuite:
        suite = ExpectationSuite(name=self.suite_name)

        # --- Rule A: Structural Integrity ---
        suite.add_expectation(gxe.ExpectTableRowCountToBeBetween(min_value=1))
        for col in dc.REQUIRED_COLUMNS:
            suite.add_expectation(gxe.ExpectColumnToExist(column=col))
            suite.add_expectation(gxe.ExpectColumnValuesToNotBeNull(column=col))

        # --- Rule B: Semantic Domains (Contract Enforcement) ---
        ranges = [
            ("Delivery_Time", dc.DELIVERY_TIME_MIN, dc.DELIVERY_TIME_MAX),
            ("Agent_Age", dc.AGENT_AGE_MIN, dc.AGENT_AGE_MAX),
            ("Agent_Rating", dc.AGENT_RATING_MIN, dc.AGENT_RATING_MAX),
        ]
        for lat_col, lon_col in dc.COORDINATE_PAIRS:
            ranges.append((lat_col, dc.LATITUDE_MIN, dc.LATITUDE_MAX))
            ranges.append((lon_col, dc.LONGITUDE_MIN, dc.LONGITUDE_MAX))

        for column, low, high in ranges:
            suite.add_expectation(
                gxe.ExpectColumnValuesToBeBetween(column=column, min_value=low, max_value=high)
            )

        # --- Rule C: Categorical Hygiene & Uniqueness ---
        # Same matching as the cleaner: case-insensitive, surrounding whitespace ignored.
        sentinel_regex = r"(?i)^\s*(" + "|".join(re.escape(s) for s in dc.SENTINEL_VALUES) + r")\s*$"
        for col in dc.CATEGORICAL_COLUMNS:
            suite.add_expectation(gxe.ExpectColumnValuesToNotMatchRegex(column=col, regex=sentinel_regex))

        suite.add_expectation(gxe.ExpectCompoundColumnsToBeUnique(column_list=list(self.df.columns)))

        return suite

    def validate(self) -> bool:
        logger.info("Validating cleaned data with Great Expectations (v1.x)...")

        # 1. Setup Datasource (Idempotent)
        try:
            ds = self.context.data_sources.get(self.datasource_name)
        except KeyError:
            ds = self.context.data_sources.add_pandas(self.datasource_name)

        try:
            asset = ds.get_asset(self.asset_name)
        except LookupError:
            asset = ds.add_dataframe_asset(name=self.asset_name)

        # 2. Create Expectation Suite
        suite = self.build_suite()

        # 3. Run Validation
        batch_def = asset.add_batch_definition_whole_dataframe("whole_df")
        batch = batch_def.get_batch(batch_parameters={"dataframe": self.df})
        self.validation_results = batch.validate(suite)

        # 4. Result Handling
        if not self.validation_results.success:
            logger.error("GX VALIDATION FAILED!")
            for res in self.validation_results.results:
                if not res.success:
                    col = res.expectation_config.kwargs.get("column", "Table-Level")
                    type_ = res.expectation_config.type
                    logger.error(f"   - Violation: {col} | Rule: {type_}")

            raise ValueError("Critical Data Validation Failed. Check MLflow artifacts for details.")

        logger.info("Great Expectations passed.")
        return True
