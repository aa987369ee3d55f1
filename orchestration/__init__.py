# Orchestration Package
from orchestration.errors import HttpError
from orchestration.executor import PromptExecutor
from orchestration.log_search import LogSearch, VariableFilter
from orchestration.resolver import EntityRef, EntityResolver

__all__ = ["HttpError", "PromptExecutor", "LogSearch", "VariableFilter", "EntityRef", "EntityResolver"]
