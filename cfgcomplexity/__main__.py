"""Allow ``python -m cfgcomplexity``."""

from .cli import main

raise SystemExit(main())
