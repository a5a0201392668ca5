"""
Core Generation Module

Selector synthesis, conversion of AI test plans into concrete steps, and
validation of the resulting test cases.
"""

from .selector_generator import SelectorGenerator, get_selector_generator
from .test_generator import TestCaseGenerator, TestCaseService
from .test_validator import TestValidator, ValidationResult

__all__ = [
    "SelectorGenerator",
    "get_selector_generator",
    "TestCaseGenerator",
    "TestCaseService",
    "TestValidator",
    "ValidationResult"
]
