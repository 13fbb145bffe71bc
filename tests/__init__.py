"""
TrendReel Test Suite.

- unit/: Stage, model, run-state, orchestrator, scheduler and capability tests
- integration/: Full pipeline runs and API endpoint tests
- conftest.py: Capability fakes and shared fixtures

Run tests with: pytest
Run only integration tests: pytest -m integration
"""
