from enum import StrEnum


class SortOrder(StrEnum):
    asc = "asc"
    desc = "desc"
