"""
BazaarFlow AI - Error Taxonomy
===============================

Every error raised by the analytical core derives from BazaarFlowError.

Per-product errors (InsufficientHistory, ConstraintViolation, ModelDegraded)
are isolated at the task boundary and reported on the cycle result.
Catalog-wide errors (AllocationError) are retried with the greedy strategy;
CycleAborted means nothing from the cycle was published.
"""

from typing import Any, Dict, Optional


class BazaarFlowError(Exception):
    """Base class for all BazaarFlow errors"""
    
    def __init__(self, message: str, product_id: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.product_id = product_id
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for failure reports"""
        return {
            'error_type': type(self).__name__,
            'product_id': self.product_id,
            'message': self.message,
        }


class ConfigurationError(BazaarFlowError):
    """Unknown option or out-of-range value in a Config section"""


class DataValidationError(BazaarFlowError):
    """Input data does not satisfy its schema"""


class InsufficientHistory(BazaarFlowError):
    """Too few observed days to fit a product; triggers the cold-start path"""
    
    def __init__(self, message: str, product_id: Optional[Any] = None,
                 observed_days: int = 0, required_days: int = 0):
        super().__init__(message, product_id)
        self.observed_days = observed_days
        self.required_days = required_days


class AdjustmentConflict(BazaarFlowError):
    """Calendar or regional data that documented precedence had to resolve"""


class ConstraintViolation(BazaarFlowError):
    """A hard business constraint (margin floor, budget) would be broken"""
    
    def __init__(self, message: str, product_id: Optional[Any] = None,
                 constraint: str = ""):
        super().__init__(message, product_id)
        self.constraint = constraint
    
    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['constraint'] = self.constraint
        return data


class ModelDegraded(BazaarFlowError):
    """Rolling accuracy fell below the configured floor"""
    
    def __init__(self, message: str, product_id: Optional[Any] = None,
                 accuracy: float = 0.0, floor: float = 0.0):
        super().__init__(message, product_id)
        self.accuracy = accuracy
        self.floor = floor


class AllocationError(BazaarFlowError):
    """Catalog-wide allocation solver could not produce a solution"""


class CycleAborted(BazaarFlowError):
    """The cycle stopped before publishing; the previous cycle stays current"""
