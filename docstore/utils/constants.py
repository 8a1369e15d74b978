"""
Central place for library-wide defaults.
Keep this module dependency-free to avoid circular imports.
"""

from typing import Dict

# --- Managed fields ---------------------------------------------------------

ID_FIELD = "id"
UID_FIELD = "uid"
CREATED_AT_FIELD = "createdAt"
UPDATED_AT_FIELD = "updatedAt"
DELETED_AT_FIELD = "deletedAt"

# Metadata attached to every record returned by a read
RECORD_ID_KEY = "_id"
RECORD_REF_KEY = "_ref"

# --- Paging and batching ----------------------------------------------------

DEFAULT_PER_PAGE = 25

# Hard cap of one bulk write submission
MAX_BATCH_SIZE = 500

DEFAULT_ORDER_BY = f"{CREATED_AT_FIELD}:desc"

# --- Condition grammar ------------------------------------------------------

# Operator symbols -> MongoDB query operators
OPERATORS: Dict[str, str] = {
    "==": "$eq",
    "!=": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
    "in": "$in",
    "not-in": "$nin",
    "array-contains": "$all",
    "array-contains-any": "$in",
}
