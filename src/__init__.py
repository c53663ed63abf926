"""Diamond IQ source package."""
