"""Application version information."""

# Semantic Versioning: MAJOR.MINOR.PATCH
# - MAJOR: Breaking changes or significant architectural changes
# - MINOR: New features, functionality additions
# - PATCH: Bug fixes, small improvements
VERSION = "0.1.0"
