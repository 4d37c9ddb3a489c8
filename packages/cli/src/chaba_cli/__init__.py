"""chaba command-line interface."""
