"""Shared utilities: file I/O helpers and logging infrastructure.

Import directly from submodules:
    from policy_pdp.utils.file_helpers import load_validated_json
    from policy_pdp.utils.logging.logger_setup import setup_jsonl_logger
"""

__all__: list[str] = []
