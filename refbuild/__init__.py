"""Select reference builds for trend analysis of CI results."""
