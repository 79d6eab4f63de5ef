"""
Configuration constants for artifact retrieval.
"""

# Seconds slept after failed attempt n, multiplied by n
RETRY_BACKOFF = 1.0

# Capacity of the download failure queue
ERROR_QUEUE_SIZE = 100

# Report results directory, relative to the destination
ALLURE_RESULTS_PATH = ("report", "allure-results")

# Indentation of rewritten report JSON
JSON_INDENT = 2
