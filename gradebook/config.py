"""
Configuration settings for the gradebook app.

These values can be overridden in Django settings by prefixing with GRADEBOOK_.
For example, to relax the weight sum check:
    GRADEBOOK_ENFORCE_WEIGHT_SUM = False

These are operational settings only. The grading constants themselves
(percentage-grade floor, failing threshold) live in the engine modules.

All configuration values are lazily loaded to avoid Django setup issues.
"""


def _get_setting(name, default):
    """Get a gradebook setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'GRADEBOOK_{name}', default)


# Define defaults as constants for direct use when Django settings are not needed
_DEFAULTS = {
    # Reject weight schemes that do not sum to 1.00 when saving or calculating
    'ENFORCE_WEIGHT_SUM': True,

    # Cached configuration lookups
    'CONFIG_CACHE_TIMEOUT': 300,  # seconds

    # Celery task settings
    'TASK_SOFT_TIME_LIMIT': 5 * 60,
    'TASK_TIME_LIMIT': 10 * 60,
}


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    This avoids Django setup issues during module import.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


# Module-level proxy object for attribute access
_config = _ConfigProxy()


def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
