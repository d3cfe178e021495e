"""thanks-stars: star the GitHub repositories of your project's dependencies."""

__version__ = "0.4.0"
