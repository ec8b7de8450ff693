"""
Base test classes for Saheli testing.
"""
import asyncio
import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

from saheli.models.sos import EmergencyContact, Location


class BaseTestCase:
    """Base class for all test cases."""

    def setup_method(self):
        """Set up test method."""
        self.temp_files = []
        self.mock_patches = []

    def teardown_method(self):
        """Clean up after test method."""
        for temp_file in self.temp_files:
            if temp_file.exists():
                temp_file.unlink()

        for patch_obj in self.mock_patches:
            patch_obj.stop()

    def create_temp_file(self, content: str = "", suffix: str = ".tmp") -> Path:
        """Create a temporary file for testing."""
        handle = tempfile.NamedTemporaryFile(suffix=suffix, delete=False)
        handle.close()
        temp_file = Path(handle.name)
        temp_file.write_text(content)
        self.temp_files.append(temp_file)
        return temp_file

    def add_patch(self, target: str, **kwargs) -> Mock:
        """Add a mock patch that will be automatically cleaned up."""
        patch_obj = patch(target, **kwargs)
        mock_obj = patch_obj.start()
        self.mock_patches.append(patch_obj)
        return mock_obj

    @staticmethod
    def make_contacts(count: int) -> list:
        return [
            EmergencyContact(name=f"Contact {i}", phone=f"+1555000{i:04d}", id=str(i))
            for i in range(1, count + 1)
        ]

    @staticmethod
    def make_location(latitude: float = 40.7128, longitude: float = -74.006) -> Location:
        return Location(latitude=latitude, longitude=longitude, accuracy=5.0)


class AsyncTestCase(BaseTestCase):
    """Base class for async test cases."""

    async def wait_for_condition(self, condition_func, timeout: float = 1.0,
                                 interval: float = 0.01) -> bool:
        """Wait for a condition to become true."""
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        while loop.time() - start_time < timeout:
            if condition_func():
                return True
            await asyncio.sleep(interval)
        return False
