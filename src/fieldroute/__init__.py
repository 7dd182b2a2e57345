"""Field advisor route planning and visit tracking service."""
