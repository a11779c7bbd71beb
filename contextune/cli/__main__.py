# =============================================================================
# contextune/cli/__main__.py: Package Entry Point
# =============================================================================
#
# Enables `python -m contextune.cli`, which runs the preview command.
# =============================================================================

"""Allow ``python -m contextune.cli`` execution."""

from contextune.cli.preview import main

main()
