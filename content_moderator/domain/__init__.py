"""Domain layer for the content moderation pipeline.

Holds the pure parts of the system: records, verdicts, alert messages,
commands, run results, the moderation policy and its evaluator.
Nothing in this package performs I/O.
"""
