from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict
from enum import Enum


class _WireModel(BaseModel):
    """Accepts camelCase wire names and snake_case attribute names"""
    model_config = ConfigDict(populate_by_name=True)


# ==================== Page Analysis ====================

class IdentifiedElement(_WireModel):
    type: str  # button, input, link, select, textarea, checkbox, radio
    # id, class, name, data-testid, aria-label, placeholder, text
    attributes: Dict[str, Optional[str]] = {}
    xpath: str
    css_path: str = Field("", alias="cssPath")


class PatternType(str, Enum):
    FORM = "form"
    NAVIGATION = "navigation"
    MODAL = "modal"
    TABLE = "table"


class UIPattern(_WireModel):
    type: PatternType
    elements: List[IdentifiedElement] = []
    description: str = ""


class UserFlow(_WireModel):
    name: str
    steps: List[str] = []
    entry_point: Optional[str] = Field(None, alias="entryPoint")


class Viewport(BaseModel):
    width: int = 1280
    height: int = 720


class PageMetadata(_WireModel):
    viewport: Viewport = Field(default_factory=Viewport)
    load_time: int = Field(0, alias="loadTime")  # milliseconds
    is_spa: bool = Field(False, alias="isSPA")


class ApplicationAnalysis(_WireModel):
    url: str
    title: str = ""
    elements: List[IdentifiedElement] = []
    patterns: List[UIPattern] = []
    flows: List[UserFlow] = []
    metadata: PageMetadata = Field(default_factory=PageMetadata)


class LearningContext(_WireModel):
    """Feedback from earlier generations, passed through to the prompt"""
    successful_patterns: List[str] = Field([], alias="successfulPatterns")
    failing_patterns: List[str] = Field([], alias="failingPatterns")
    selector_preferences: List[str] = Field([], alias="selectorPreferences")


# ==================== AI Test Specification ====================

class StepAction(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    ASSERT = "assert"
    WAIT = "wait"


class AssertionType(str, Enum):
    EXISTS = "exists"
    VISIBLE = "visible"
    TEXT = "text"
    VALUE = "value"
    ATTRIBUTE = "attribute"


class StepAssertion(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AssertionType
    expected: str


class AIGeneratedStep(_WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    action: StepAction
    description: str
    element_description: Optional[str] = Field(None, alias="elementDescription")
    value: Optional[str] = None
    assertion: Optional[StepAssertion] = None


class TestSpecification(_WireModel):
    """Abstract test plan authored by the model; steps are not bound to selectors"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    test_name: str = Field(alias="testName", min_length=1)
    description: str
    steps: List[AIGeneratedStep] = Field(min_length=1)
    tags: List[str]


# ==================== Test Case (store entity) ====================

class TestStepAction(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    ASSERT = "assert"
    WAIT = "wait"
    API_CALL = "api-call"


class TestCaseType(str, Enum):
    FUNCTIONAL = "functional"
    UI = "ui"
    API = "api"
    PERFORMANCE = "performance"


class TestCasePriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TestStep(_WireModel):
    step_number: int = Field(alias="stepNumber")
    action: TestStepAction
    target: str
    value: Optional[str] = None
    expected_result: Optional[str] = Field(None, alias="expectedResult")


class CreateTestCaseInput(_WireModel):
    name: str
    description: str
    type: TestCaseType
    steps: List[TestStep]
    project_id: str = Field(alias="projectId")
    suite_id: str = Field(alias="suiteId")
    tags: List[str] = []
    priority: TestCasePriority = TestCasePriority.MEDIUM


class TestCase(_WireModel):
    test_case_id: str = Field(alias="testCaseId")
    suite_id: str = Field(alias="suiteId")
    project_id: str = Field(alias="projectId")
    user_id: str = Field(alias="userId")
    name: str
    description: str
    type: TestCaseType
    steps: List[TestStep]
    priority: TestCasePriority = TestCasePriority.MEDIUM
    tags: List[str] = []
    created_at: int = Field(alias="createdAt")  # epoch milliseconds
    updated_at: int = Field(alias="updatedAt")
