"""Machine-readable run output: JUnit XML and JSON."""
