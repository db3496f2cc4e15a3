"""Terminal driver for the mastery loop."""
