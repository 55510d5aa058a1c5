"""PEScope core: data models, exceptions and the analysis engine."""
