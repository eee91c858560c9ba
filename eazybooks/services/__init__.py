"""External services used by EazyBooks."""
