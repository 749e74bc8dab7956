"""Command-line interface for remotedeploy."""
