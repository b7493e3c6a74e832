"""pushdispatch test suite

Test organization:
- unit/: Unit tests for individual modules
  - push/: codec, classifier, request builder, transports, dispatcher
  - queue/: notification queue
  - config/: YAML + environment configuration
  - models/: notification and result data structures
- integration/: WebPush over httpx transports against an in-process push service

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/push/

    # With coverage
    pytest --cov=pushdispatch --cov-report=term-missing
"""
