"""
CareNest Booking Tests

Unit tests for the booking core: availability, calendar gating, booking
negotiation, the session state machine, action eligibility and the REST
API client.

Running Tests:
    # Run all tests with pytest
    pytest tests/ -v

    # Run one module
    pytest tests/unit/test_state_machine.py -v

All time-dependent tests use FixedClock, so results do not depend on the
wall clock.
"""
