"""Service layer — entity managers, synchronizer, batch refresh, schedule."""
