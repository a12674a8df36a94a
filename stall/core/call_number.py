"""
Stall Service — Customer-facing call numbers

The persisted counter grows forever; the number shouted at the counter
recycles through 201-300.
"""
CALL_NUMBER_BASE = 201
CALL_NUMBER_WINDOW = 100


def transform_call_number(raw: int) -> int:
    return (raw % CALL_NUMBER_WINDOW) + CALL_NUMBER_BASE
