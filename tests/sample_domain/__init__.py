"""Sample domain events and handlers used by the test suite."""
