import asyncio
import json
import os
import time
import uuid
from typing import List, Optional

from .models import CreateTestCaseInput, TestCase


class JsonTestCaseStore:
    """File-based storage for generated test cases, one JSON file per case"""

    def __init__(self, data_dir: str = "data"):
        self.data_dir = data_dir
        self.test_cases_dir = os.path.join(data_dir, "test_cases")
        self._ensure_directories()

    def _ensure_directories(self):
        """Ensure all necessary directories exist"""
        os.makedirs(self.test_cases_dir, exist_ok=True)

    def _get_test_case_file(self, test_case_id: str) -> str:
        return os.path.join(self.test_cases_dir, f"{test_case_id}.json")

    async def create_test_case(self, user_id: str, payload: CreateTestCaseInput) -> TestCase:
        """Store a new test case; assigns the id and timestamps"""
        now = int(time.time() * 1000)
        test_case = TestCase(
            test_case_id=str(uuid.uuid4()),
            suite_id=payload.suite_id,
            project_id=payload.project_id,
            user_id=user_id,
            name=payload.name,
            description=payload.description,
            type=payload.type,
            steps=payload.steps,
            priority=payload.priority,
            tags=payload.tags,
            created_at=now,
            updated_at=now
        )
        await asyncio.to_thread(self.save_test_case, test_case)
        return test_case

    def save_test_case(self, test_case: TestCase):
        file_path = self._get_test_case_file(test_case.test_case_id)
        with open(file_path, 'w') as f:
            json.dump(test_case.model_dump(mode='json', by_alias=True), f, indent=2)

    def get_test_case(self, test_case_id: str) -> Optional[TestCase]:
        file_path = self._get_test_case_file(test_case_id)
        if not os.path.exists(file_path):
            return None

        with open(file_path, 'r') as f:
            return TestCase.model_validate(json.load(f))

    def list_test_cases(
        self,
        project_id: Optional[str] = None,
        suite_id: Optional[str] = None
    ) -> List[TestCase]:
        """All stored test cases, newest first, optionally filtered"""
        test_cases = []
        for filename in os.listdir(self.test_cases_dir):
            if not filename.endswith('.json'):
                continue
            test_case = self.get_test_case(filename[:-5])
            if test_case is None:
                continue
            if project_id and test_case.project_id != project_id:
                continue
            if suite_id and test_case.suite_id != suite_id:
                continue
            test_cases.append(test_case)
        return sorted(test_cases, key=lambda tc: tc.created_at, reverse=True)

    def delete_test_case(self, test_case_id: str) -> bool:
        file_path = self._get_test_case_file(test_case_id)
        if os.path.exists(file_path):
            os.remove(file_path)
            return True
        return False
