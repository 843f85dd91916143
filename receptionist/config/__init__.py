"""
Configuration module for the receptionist bridge.

Key components:
- constants: wire event names, endpoints and timing values shared by both legs.
- logging_config: console and rotating-file logging for the application logger.
- settings: environment-driven Settings loaded once at startup.
- prompts: the fixed system instructions and greeting directive.

Usage examples:
```python
from receptionist.config.logging_config import configure_logging
from receptionist.config.settings import load_settings

logger = configure_logging()
settings = load_settings()
```
"""
