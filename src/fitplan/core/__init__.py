"""Pure planning and progress engine."""
