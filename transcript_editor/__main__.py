"""Package entry point for ``python -m transcript_editor``.

WHY: Python's ``-m`` flag looks for ``__main__.py`` inside the package.

HOW: Delegates to the CLI's main() function.
"""

from transcript_editor.cli import main

if __name__ == "__main__":
    main()
