"""
AI Test Generation API Endpoints
================================
REST API for generating UI test cases from a page analysis.
"""

import os
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from .brain.model_client import ResilientModelClient
from .brain.usage import UsageTracker
from .config import get_ai_config
from .core.selector_generator import SelectorGenerator, get_selector_generator
from .core.test_generator import TestCaseGenerator
from .errors import (
    CircuitOpenError,
    ConfigurationError,
    MaxRetriesExceededError,
    UsageLimitExceededError,
    ValidationError,
)
from .models import ApplicationAnalysis, IdentifiedElement, LearningContext
from .storage import JsonTestCaseStore

router = APIRouter(prefix="/api/ai-tests", tags=["ai-tests"])


_model_client: Optional[ResilientModelClient] = None
_store: Optional[JsonTestCaseStore] = None


def get_model_client() -> ResilientModelClient:
    global _model_client
    if _model_client is None:
        try:
            config = get_ai_config()
            _model_client = ResilientModelClient(config=config, usage_tracker=UsageTracker(config))
        except ConfigurationError as e:
            raise HTTPException(status_code=500, detail=str(e))
    return _model_client


def get_test_case_store() -> JsonTestCaseStore:
    global _store
    if _store is None:
        _store = JsonTestCaseStore(data_dir=os.getenv("TESTGEN_DATA_DIR", "data"))
    return _store


class GenerateTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    analysis: ApplicationAnalysis
    scenario: str
    project_id: str = Field(alias="projectId")
    suite_id: str = Field(alias="suiteId")
    user_id: str = Field(alias="userId")
    context: Optional[LearningContext] = None


class SelectorRequest(BaseModel):
    target: IdentifiedElement
    elements: List[IdentifiedElement]


# =========================================================================
# GENERATION
# =========================================================================

@router.post("/generate")
async def generate_test_case(
    request: GenerateTestRequest,
    client: ResilientModelClient = Depends(get_model_client),
    store: JsonTestCaseStore = Depends(get_test_case_store),
    selectors: SelectorGenerator = Depends(get_selector_generator)
):
    """
    Generate and persist a test case for the scenario.

    No test case is stored if the model cannot produce a valid
    specification.
    """
    generator = TestCaseGenerator(
        test_case_service=store,
        model_client=client,
        selector_generator=selectors
    )
    try:
        test_case = await generator.generate_from_analysis(
            request.analysis,
            request.scenario,
            project_id=request.project_id,
            suite_id=request.suite_id,
            user_id=request.user_id,
            context=request.context
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except CircuitOpenError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except MaxRetriesExceededError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except UsageLimitExceededError as e:
        raise HTTPException(status_code=429, detail=str(e))

    return test_case.model_dump(mode="json", by_alias=True)


@router.post("/selectors")
async def generate_selector(
    request: SelectorRequest,
    selectors: SelectorGenerator = Depends(get_selector_generator)
):
    """Best selector for one element plus the compound refinement"""
    elements = request.elements
    return {
        "selector": selectors.generate_selector(request.target, elements),
        "refined": selectors.refine_selector(request.target, elements),
        "strategies": selectors.explain(request.target, elements)
    }


# =========================================================================
# STATUS
# =========================================================================

@router.get("/status")
async def get_status(client: ResilientModelClient = Depends(get_model_client)):
    """Circuit state and the most recent call log entries"""
    logs = client.get_logs()
    return {
        "circuit_state": client.get_circuit_state().value,
        "recent_calls": [asdict(entry) for entry in logs[-20:]],
        "total_calls": len(logs)
    }


@router.post("/circuit/reset")
async def reset_circuit(client: ResilientModelClient = Depends(get_model_client)):
    client.reset_circuit()
    return {
        "success": True,
        "circuit_state": client.get_circuit_state().value
    }
