import pytest

from compute_ops.scope import Compute


class TestCase:
    """Base for tool tests: the server context variables point at the fake server."""

    @pytest.fixture(autouse=True)
    def _context(self, compute_context: Compute) -> Compute:
        return compute_context
