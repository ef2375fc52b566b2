"""ordbridge command line interface."""
