"""Investigation agent pack."""

from sre.agents.rca_agent import RCAAgent
from sre.agents.test_case_agent import TestCaseAgent, TestCaseGenerationError

__all__ = [
    "RCAAgent",
    "TestCaseAgent",
    "TestCaseGenerationError",
]
