"""Department calendar and advisory conflict detection."""
