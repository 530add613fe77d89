"""
FastAPI dependency providers.

The provider client, store and temp-file manager are built once per process
from settings; tests swap them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends

from legalrelay.analysis import DocumentAnalyzer
from legalrelay.config import Settings, get_settings
from legalrelay.provider import LLMProvider, build_provider
from legalrelay.questions import QuestionAnswerer
from legalrelay.store import UserDataStore, build_engine
from legalrelay.tempfiles import TempFileManager


@lru_cache(maxsize=1)
def get_provider() -> LLMProvider:
    return build_provider(get_settings())


@lru_cache(maxsize=1)
def get_store() -> UserDataStore:
    store = UserDataStore(build_engine(get_settings().database_url))
    store.create_schema()
    return store


@lru_cache(maxsize=1)
def get_temp_files() -> TempFileManager:
    return TempFileManager(get_settings().temp_dir)


def get_account_store(settings: Settings = Depends(get_settings)) -> Optional[UserDataStore]:
    """Store used by the analysis account check; not opened unless accounts are on."""
    return get_store() if settings.enable_accounts else None


def get_analyzer(
    settings: Settings = Depends(get_settings),
    provider: LLMProvider = Depends(get_provider),
    temp_files: TempFileManager = Depends(get_temp_files),
    store: Optional[UserDataStore] = Depends(get_account_store),
) -> DocumentAnalyzer:
    return DocumentAnalyzer(provider, settings, temp_files, store=store)


def get_answerer(
    settings: Settings = Depends(get_settings),
    provider: LLMProvider = Depends(get_provider),
) -> QuestionAnswerer:
    return QuestionAnswerer(provider, settings)
