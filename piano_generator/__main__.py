"""Entry point wrapper for ``python -m piano_generator``.

Execution is forwarded to :func:`piano_generator.main` so running the module
and the installed ``piano-generator`` console script behave identically.

Example
-------
The following invocation writes a 32-step melody to ``out/``::

    python -m piano_generator --randomness 1.0 --steps 32 --output-dir out
"""

from . import main

if __name__ == "__main__":
    main()
