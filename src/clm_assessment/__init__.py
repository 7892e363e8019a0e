"""CLM Self-Assessment service.

Contract lifecycle management maturity self-assessment: a respondent works
through six rated stages, answers autosave incrementally, and each stage is
scored 0-100 and compared against peer and best-in-class benchmarks.
"""

__version__ = "0.1.0"
