"""Domain-Driven Design bounded contexts for robot-heal."""
