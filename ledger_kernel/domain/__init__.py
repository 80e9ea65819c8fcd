"""Pure domain layer: values, DTOs, guardrails and the clock abstraction."""
