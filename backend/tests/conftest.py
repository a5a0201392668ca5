"""
Pytest configuration and shared fixtures for the test generation tests.
"""

import json
import pytest
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock
from typing import Dict, Any, List

# Add backend app to path
sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from testgen.config import AIConfig
from testgen.models import (
    ApplicationAnalysis, IdentifiedElement, TestCase, CreateTestCaseInput
)
from testgen.brain.model_client import ChatCompletion, ResilientModelClient


# ==================== Clock / Sleep Fixtures ====================

class FakeClock:
    """Manually advanced clock returning seconds"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    """Async sleep replacement that records requested delays."""
    return AsyncMock(return_value=None)


# ==================== Page Analysis Fixtures ====================

@pytest.fixture
def sample_elements() -> List[IdentifiedElement]:
    """Elements captured from a simple login page."""
    return [
        IdentifiedElement(
            type="input",
            attributes={"id": "username", "name": "username", "placeholder": "Enter username"},
            xpath="/html/body/form/input[1]",
            css_path="form > input:nth-child(1)"
        ),
        IdentifiedElement(
            type="input",
            attributes={
                "id": "password",
                "name": "password",
                "placeholder": "Enter password",
                "aria-label": "Password"
            },
            xpath="/html/body/form/input[2]",
            css_path="form > input:nth-child(2)"
        ),
        IdentifiedElement(
            type="button",
            attributes={"data-testid": "submit-btn", "class": "btn btn-primary", "text": "Submit"},
            xpath="/html/body/form/button[1]"
        ),
        IdentifiedElement(
            type="button",
            attributes={"class": "btn", "text": "Cancel"},
            xpath="/html/body/form/button[2]"
        ),
        IdentifiedElement(
            type="link",
            attributes={"class": "nav-link", "text": "Forgot password?"},
            xpath="/html/body/nav/a[1]"
        ),
    ]


@pytest.fixture
def sample_analysis(sample_elements) -> ApplicationAnalysis:
    """Analysis of the login page."""
    return ApplicationAnalysis(
        url="https://example.com/login",
        title="Login",
        elements=sample_elements,
        patterns=[{"type": "form", "elements": [], "description": "Login form"}],
        flows=[],
        metadata={"viewport": {"width": 1280, "height": 720}, "loadTime": 420, "isSPA": False}
    )


# ==================== Specification Fixtures ====================

@pytest.fixture
def valid_spec_dict() -> Dict[str, Any]:
    """Structurally valid model output."""
    return {
        "testName": "Login Test",
        "description": "Test user login functionality",
        "steps": [
            {"action": "navigate", "description": "Navigate to login page",
             "value": "https://example.com/login"},
            {"action": "type", "description": "Enter username",
             "elementDescription": "username", "value": "testuser"},
            {"action": "click", "description": "Click login button",
             "elementDescription": "Submit"},
            {"action": "assert", "description": "Verify successful login",
             "elementDescription": "Submit",
             "assertion": {"type": "visible", "expected": "Welcome"}},
        ],
        "tags": ["login", "authentication"],
    }


# ==================== Model Client Fixtures ====================

@pytest.fixture
def ai_config() -> AIConfig:
    """Default configuration with a test API key."""
    return AIConfig(api_key="test-api-key")


@pytest.fixture
def mock_transport(valid_spec_dict):
    """Transport returning a valid specification."""
    transport = Mock()
    transport.complete = AsyncMock(return_value=ChatCompletion(
        content=json.dumps(valid_spec_dict),
        prompt_tokens=1200,
        completion_tokens=300,
        total_tokens=1500
    ))
    return transport


@pytest.fixture
def make_client(ai_config, mock_transport, fake_sleep, fake_clock):
    """Factory for clients wired to the fake transport, sleep and clock."""
    def _make(config: AIConfig = None, transport=None, **kwargs) -> ResilientModelClient:
        return ResilientModelClient(
            config=config or ai_config,
            transport=transport or mock_transport,
            sleep=fake_sleep,
            clock=fake_clock,
            **kwargs
        )
    return _make


# ==================== Test Case Service Fixture ====================

@pytest.fixture
def mock_test_case_service():
    """Test case service that echoes the payload back as a stored case."""
    service = Mock()

    async def create_test_case(user_id: str, payload: CreateTestCaseInput) -> TestCase:
        return TestCase(
            test_case_id="tc-123",
            suite_id=payload.suite_id,
            project_id=payload.project_id,
            user_id=user_id,
            name=payload.name,
            description=payload.description,
            type=payload.type,
            steps=payload.steps,
            priority=payload.priority,
            tags=payload.tags,
            created_at=1700000000000,
            updated_at=1700000000000
        )

    service.create_test_case = AsyncMock(side_effect=create_test_case)
    return service
