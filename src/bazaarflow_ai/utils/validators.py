"""
Data Validation Utilities
==========================
Schema validation and row-level cleaning for boundary inputs.

Design Principles:
- Never silently fail - always log issues
- Return structured validation results
- Drop bad rows with a warning, fail only on missing required columns
- Provide actionable error messages
"""

import pandas as pd
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field

from .logger import get_logger
from .constants import DATA_QUALITY_THRESHOLDS
from ..exceptions import DataValidationError

logger = get_logger(__name__)


@dataclass
class ValidationResult:
    """Outcome of checking one input frame: errors block it, warnings only get logged."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: Dict[str, Any] = field(default_factory=dict)
    
    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False
    
    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "info": self.info
        }


def parse_timestamps(values: pd.Series) -> pd.Series:
    """
    Parse a timestamp column that may hold ISO strings, datetimes or
    UNIX seconds. Unparseable values become NaT.
    """
    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
        return pd.to_datetime(values, unit='s', errors='coerce')
    return pd.to_datetime(values, errors='coerce')


class SchemaValidator:
    """
    Validates and cleans DataFrames against the schemas in utils.constants.
    
    Usage
    -----
    validator = SchemaValidator()
    clean_df, result = validator.clean(df, TRANSACTION_SCHEMA)
    
    if result.warnings:
        print(f"Dropped rows: {result.info['dropped_rows']}")
    """
    
    def __init__(self, thresholds: Optional[Dict] = None):
        """
        Initialize validator with optional custom thresholds.
        
        Parameters
        ----------
        thresholds : dict, optional
            Custom thresholds for validation. Uses defaults if not provided.
        """
        self.thresholds = thresholds or DATA_QUALITY_THRESHOLDS
    
    def validate(self, df: pd.DataFrame, schema: Dict[str, Any]) -> ValidationResult:
        """
        Validate a DataFrame against a schema without modifying it.
        
        Parameters
        ----------
        df : pd.DataFrame
            The DataFrame to validate
        schema : dict
            Schema definition with required/optional columns
        
        Returns
        -------
        ValidationResult
            Structured validation result with errors/warnings
        """
        result = ValidationResult()
        name = schema.get("name", "data")
        result.info["name"] = name
        result.info["row_count"] = len(df)
        
        missing = [col for col in schema["required_columns"] if col not in df.columns]
        if missing:
            result.add_error(f"Missing required columns in {name}: {missing}")
        
        result.info["optional_columns_present"] = [
            col for col in schema.get("optional_columns", []) if col in df.columns
        ]
        
        for col in schema.get("numeric_columns", []):
            if col in df.columns:
                coerced = pd.to_numeric(df[col], errors='coerce')
                bad = int((coerced.isna() & df[col].notna()).sum())
                if bad > 0:
                    result.add_warning(f"Column '{col}' in {name} has {bad} non-numeric values")
                if col in schema.get("non_negative_columns", []):
                    negatives = int((coerced < 0).sum())
                    if negatives > 0:
                        result.add_warning(f"Column '{col}' in {name} has {negatives} negative values")
        
        for col in schema.get("timestamp_columns", []):
            if col in df.columns:
                parsed = parse_timestamps(df[col])
                bad = int(parsed.isna().sum())
                if bad > 0:
                    result.add_warning(f"Column '{col}' in {name} has {bad} unparseable timestamps")
                if parsed.notna().any():
                    result.info[f"{col}_date_range"] = {
                        "min": str(parsed.min()),
                        "max": str(parsed.max())
                    }
                    min_valid = pd.Timestamp(self.thresholds["min_valid_date"])
                    max_valid = pd.Timestamp(self.thresholds["max_valid_date"])
                    out_of_range = int(((parsed < min_valid) | (parsed > max_valid)).sum())
                    if out_of_range > 0:
                        result.add_warning(
                            f"Column '{col}' in {name} has {out_of_range} timestamps outside "
                            f"{self.thresholds['min_valid_date']}..{self.thresholds['max_valid_date']}"
                        )
        
        if result.is_valid:
            logger.debug(f"Validation PASSED for {name}")
        else:
            logger.error(f"Validation FAILED for {name}: {result.errors}")
        
        return result
    
    def clean(
        self,
        df: pd.DataFrame,
        schema: Dict[str, Any]
    ) -> Tuple[pd.DataFrame, ValidationResult]:
        """
        Validate, coerce types and drop rows that cannot be used.
        
        Raises
        ------
        DataValidationError
            When a required column is missing.
        
        Returns
        -------
        Tuple[pd.DataFrame, ValidationResult]
            Cleaned copy and the validation result
        """
        result = self.validate(df, schema)
        if not result.is_valid:
            raise DataValidationError("; ".join(result.errors))
        
        name = schema.get("name", "data")
        clean_df = df.copy()
        keep = pd.Series(True, index=clean_df.index)
        
        for col in schema.get("numeric_columns", []):
            if col in clean_df.columns:
                clean_df[col] = pd.to_numeric(clean_df[col], errors='coerce')
                if col in schema["required_columns"]:
                    keep &= clean_df[col].notna()
                if col in schema.get("non_negative_columns", []):
                    keep &= ~(clean_df[col] < 0)
        
        for col in schema.get("timestamp_columns", []):
            if col in clean_df.columns:
                clean_df[col] = parse_timestamps(clean_df[col])
                keep &= clean_df[col].notna()
        
        for col in schema["required_columns"]:
            keep &= clean_df[col].notna()
        
        dropped = int((~keep).sum())
        clean_df = clean_df[keep].reset_index(drop=True)
        result.info["dropped_rows"] = dropped
        
        if dropped > 0 and len(df) > 0:
            share = dropped / len(df)
            prefix = "CRITICAL: " if share > self.thresholds["dropped_rows_critical_pct"] else ""
            message = f"{prefix}Dropped {dropped} of {len(df)} rows from {name} ({share*100:.1f}%)"
            result.add_warning(message)
            logger.warning(message)
        
        return clean_df, result
