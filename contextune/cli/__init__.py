# =============================================================================
# contextune/cli/__init__.py: CLI Module Overview
# =============================================================================
#
# Command-line tools for operators and developers who want to exercise the
# recommendation core without an HTTP layer in front of it. Each submodule
# is self-contained and runnable via `python -m contextune.cli.<module>`.
#
#   PREVIEW (preview.py)
#      Runs the full hybrid pipeline for one user, for a live or a fixed
#      context, and prints the playlist as text or JSON. Nothing is saved.
# =============================================================================
