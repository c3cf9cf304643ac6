"""Core building blocks for canoe: settings, client factory and errors."""
