from .plan import Plan
from .search_host import SearchHost
from .tenant import Tenant, LogBucket, DefaultLogBucket
from .apikey import ApiKey

__all__ = ["Plan", "SearchHost", "Tenant", "LogBucket", "DefaultLogBucket", "ApiKey"]
