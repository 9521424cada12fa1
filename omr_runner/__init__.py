"""OMR job runner.

Stages an answer-sheet image plus a format template under a checksum-keyed
job directory, runs the external OMR program under a virtual display and
either cleans up (success) or archives an error log (failure).

Modules here should not trigger long-running side effects at import time.
"""
